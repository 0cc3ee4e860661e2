"""
Render post and reply bodies to safe HTML.

Bodies are plain text with a small markdown subset. Each line is rendered on
its own: image lines become <img>, links to audio files become an <audio>
player, blank lines become <br/>, and everything else becomes a paragraph
with inline bold/italic/code/link formatting. Markup is built tag by tag, so
text from the body is always escaped.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from classforum.storage import rewrite_storage_url

IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)\)")
LINK_PATTERN = re.compile(r"\[([^\]]*)\]\(([^)\s]+)\)")
INLINE_PATTERN = re.compile(
    r"\*\*(?P<bold>.+?)\*\*"
    r"|\*(?P<italic>[^*]+?)\*"
    r"|`(?P<code>[^`]+)`"
    r"|\[(?P<label>[^\]]+)\]\((?P<href>[^)\s]+)\)"
)

AUDIO_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
}


def is_safe_url(url: str) -> bool:
    if url.startswith("/") and not url.startswith("//"):
        return True
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _audio_type(url: str) -> str | None:
    path = urlparse(url).path.lower()
    for ext, mime in AUDIO_TYPES.items():
        if path.endswith(ext):
            return mime
    return None


def _media_block(soup: BeautifulSoup, child: Tag) -> Tag:
    block = soup.new_tag("div", attrs={"class": "media"})
    block.append(child)
    return block


def _image_block(soup: BeautifulSoup, alt: str, url: str) -> Tag:
    img = soup.new_tag("img", attrs={"src": url, "alt": alt or "image"})
    return _media_block(soup, img)


def _audio_block(soup: BeautifulSoup, url: str, mime: str) -> Tag:
    audio = soup.new_tag("audio", attrs={"controls": ""})
    audio.append(soup.new_tag("source", attrs={"src": url, "type": mime}))
    return _media_block(soup, audio)


def _paragraph(soup: BeautifulSoup, line: str, storage_url: str) -> Tag:
    paragraph = soup.new_tag("p")
    pos = 0
    for match in INLINE_PATTERN.finditer(line):
        if match.start() > pos:
            paragraph.append(line[pos : match.start()])
        pos = match.end()
        if match.group("bold") is not None:
            tag = soup.new_tag("strong")
            tag.string = match.group("bold")
        elif match.group("italic") is not None:
            tag = soup.new_tag("em")
            tag.string = match.group("italic")
        elif match.group("code") is not None:
            tag = soup.new_tag("code")
            tag.string = match.group("code")
        else:
            href = rewrite_storage_url(match.group("href"), storage_url)
            if not is_safe_url(href):
                paragraph.append(match.group(0))
                continue
            tag = soup.new_tag(
                "a",
                attrs={"href": href, "rel": "nofollow noopener", "target": "_blank"},
            )
            tag.string = match.group("label")
        paragraph.append(tag)
    if pos < len(line):
        paragraph.append(line[pos:])
    return paragraph


def render_line(soup: BeautifulSoup, line: str, storage_url: str) -> Tag:
    if not line.strip():
        return soup.new_tag("br")

    image = IMAGE_PATTERN.search(line)
    if image:
        url = rewrite_storage_url(image.group(2), storage_url)
        if is_safe_url(url):
            return _image_block(soup, image.group(1), url)

    link = LINK_PATTERN.search(line)
    if link and not image:
        url = rewrite_storage_url(link.group(2), storage_url)
        mime = _audio_type(url)
        if mime and is_safe_url(url):
            return _audio_block(soup, url, mime)

    return _paragraph(soup, line.strip(), storage_url)


def render_content(content: str, storage_url: str = "") -> str:
    """Render a post/reply body to an HTML fragment."""
    soup = BeautifulSoup("", "html.parser")
    for line in (content or "").replace("\r\n", "\n").split("\n"):
        soup.append(render_line(soup, line, storage_url))
    return str(soup)
