"""
HTML loader for the in-memory document.

Markup is parsed with BeautifulSoup. Declarative shadow DOM is supported:
a ``<template shadowrootmode="open">`` element becomes the open shadow
root of its parent.
"""

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from flow_replay.browsers.memory.dom import MemoryDocument, element_for, new_soup

HEAD_TAGS = ("title", "meta", "link", "base", "style")


def _drop_ignorable_strings(soup: BeautifulSoup) -> None:
    # Comments, doctypes and whitespace between tags
    for node in list(soup.descendants):
        if isinstance(node, NavigableString) and (
            isinstance(node, PreformattedString) or not node.strip()
        ):
            node.extract()


def _attach_shadow_roots(soup: BeautifulSoup) -> None:
    for template in soup.find_all("template"):
        mode = template.get("shadowrootmode") or template.get("shadowroot")
        host = template.parent
        if not mode or host is None or isinstance(host, BeautifulSoup):
            continue
        shadow = element_for(host).attach_shadow()
        for child in list(template.contents):
            shadow.soup.append(child)
        template.extract()


def _normalize(soup: BeautifulSoup) -> Tag:
    """Add missing ``html``/``head``/``body`` wrappers the way a browser does."""
    top = soup.find_all(True, recursive=False)
    if len(top) == 1 and top[0].name == "html":
        html = top[0]
        if html.find("body", recursive=False) is None:
            body = soup.new_tag("body")
            for child in html.find_all(True, recursive=False):
                if child.name != "head":
                    body.append(child)
            html.append(body)
        return html

    html = soup.new_tag("html")
    head = soup.new_tag("head")
    body = soup.new_tag("body")
    for item in list(soup.contents):
        if isinstance(item, NavigableString):
            body.append(item)
        elif item.name == "head":
            for child in list(item.contents):
                head.append(child)
        elif item.name in HEAD_TAGS:
            head.append(item)
        elif item.name == "body":
            body.attrs.update(item.attrs)
            for child in list(item.contents):
                body.append(child)
        else:
            body.append(item)
    html.append(head)
    html.append(body)
    return html


def parse_html(markup: str, url: str = "about:blank") -> MemoryDocument:
    """
    Parse markup into a complete document.

    Missing ``html``/``body`` wrappers are added the way a browser adds them.

    Args:
        markup: HTML source
        url: URL the document reports

    Returns:
        A MemoryDocument in the 'complete' ready state
    """
    soup = new_soup(markup)
    _drop_ignorable_strings(soup)
    # Wrap in source order so synthetic layout follows the markup
    for node in soup.find_all(True):
        element_for(node)
    _attach_shadow_roots(soup)

    document = MemoryDocument(url=url)
    document.set_root(element_for(_normalize(soup)))
    return document
