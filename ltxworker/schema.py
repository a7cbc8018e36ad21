"""
llms.txt validation.

Two stages, each returning a list of error messages (empty list means valid):

1. validate_structure: the text is well-formed markdown at all.
2. validate_llms_txt: the markdown follows the llms.txt layout:

    # Site name                       (required, first block, only H1)
    > Summary                         (required, directly after the H1)
    Optional detail blocks            (anything but headings)
    ## Section                        (zero or more H2 file-list sections)
    - [Link title](https://url): notes
"""

import re
from typing import List, Optional

from markdown_it import MarkdownIt

_md = MarkdownIt("commonmark")

_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")

# Blocks a file-list section may hold besides its lists
FILE_LIST_ALLOWED = {"paragraph_open", "bullet_list_open", "ordered_list_open"}

BLOCK_NAMES = {
    "paragraph_open": "paragraph",
    "blockquote_open": "blockquote",
    "bullet_list_open": "list",
    "ordered_list_open": "list",
    "fence": "code block",
    "code_block": "code block",
    "html_block": "HTML block",
    "hr": "thematic break",
}


def _unterminated_fence(text: str) -> Optional[str]:
    open_marker = None
    for line in text.splitlines():
        m = _FENCE.match(line)
        if not m:
            continue
        marker = m.group(1)
        if open_marker is None:
            open_marker = marker
        elif marker[0] == open_marker[0] and len(marker) >= len(open_marker) and line.strip() == marker:
            open_marker = None
    return open_marker


def _top_level_blocks(tokens) -> list:
    """Indexes of tokens that open (or are) a top-level block."""
    return [i for i, t in enumerate(tokens) if t.level == 0 and t.nesting in (0, 1)]


def validate_structure(text: str) -> List[str]:
    """
    Check that text is usable markdown.

    Returns:
        List of error messages. Empty list means valid.
    """
    if not isinstance(text, str) or text.strip() == "":
        return ["Document is empty."]

    errors: List[str] = []
    marker = _unterminated_fence(text)
    if marker is not None:
        errors.append(f"Unterminated code fence opened with '{marker}'.")

    try:
        tokens = _md.parse(text)
    except Exception as e:  # markdown-it reports no typed errors
        return errors + [f"Not valid markdown: {e}"]

    blocks = _top_level_blocks(tokens)
    if len(blocks) == 1 and tokens[blocks[0]].type == "fence":
        errors.append("Document is wrapped in a code fence; output the raw markdown instead.")
    return errors


def _heading_text(tokens, i: int) -> str:
    inline = tokens[i + 1] if i + 1 < len(tokens) else None
    return inline.content if inline is not None and inline.type == "inline" else ""


def _list_item_errors(tokens, start: int) -> List[str]:
    """Check that every item of the list opened at tokens[start] leads with a link."""
    errors: List[str] = []
    item_level = tokens[start].level + 1
    i = start + 1
    while i < len(tokens) and not (tokens[i].level == tokens[start].level and tokens[i].nesting == -1):
        tok = tokens[i]
        if tok.type == "list_item_open" and tok.level == item_level:
            inline = None
            j = i + 1
            if j < len(tokens) and tokens[j].type == "paragraph_open" and j + 1 < len(tokens):
                inline = tokens[j + 1]
            children = inline.children if inline is not None and inline.children else []
            first = children[0] if children else None
            if first is None or first.type != "link_open":
                content = inline.content if inline is not None else ""
                errors.append(
                    f"File list items must start with a markdown link [name](url); got: '{content}'"
                )
            elif not (first.attrGet("href") or "").strip():
                errors.append(f"File list link has an empty URL: '{inline.content}'")
        i += 1
    return errors


def validate_llms_txt(text: str) -> List[str]:
    """
    Check that markdown text follows the llms.txt layout.

    Returns:
        List of error messages. Empty list means valid.
    """
    tokens = _md.parse(text)
    errors: List[str] = []

    stage = "h1"  # h1 -> summary -> details -> file_lists
    has_h1 = False
    has_summary = False

    for position, i in enumerate(_top_level_blocks(tokens)):
        tok = tokens[i]

        if tok.type == "heading_open":
            level = int(tok.tag[1:])
            title = _heading_text(tokens, i)
            if level == 1:
                if has_h1:
                    errors.append(f"Only one H1 is allowed; found a second H1: '{title}'")
                elif position != 0:
                    errors.append(f"H1 must be the first block; found '{title}' at block {position}")
                else:
                    has_h1 = True
                    stage = "summary"
            elif level == 2:
                if stage in ("h1", "summary"):
                    errors.append(f"Found H2 '{title}' before the summary blockquote.")
                stage = "file_lists"
            else:
                errors.append(f"Only H1 and H2 headings are allowed; found H{level}: '{title}'")
            continue

        name = BLOCK_NAMES.get(tok.type, tok.type)

        if position == 0:
            errors.append(f"The first block must be an H1 with the site name, not a {name}.")
            stage = "summary"
            continue

        if stage == "summary":
            if tok.type == "blockquote_open":
                has_summary = True
                stage = "details"
            else:
                errors.append(f"Expected the summary blockquote right after the H1, found a {name}.")
                stage = "details"
            continue

        if stage == "file_lists":
            if tok.type not in FILE_LIST_ALLOWED:
                errors.append(f"Found a {name} inside a file list section; only link lists are allowed.")
            elif tok.type != "paragraph_open":
                errors.extend(_list_item_errors(tokens, i))

    if not has_h1 and not any("H1" in e for e in errors):
        errors.append("Missing required H1 with the site name.")
    if not has_summary and not any("summary" in e for e in errors):
        errors.append("Missing required summary blockquote.")

    return errors


def validate_document(text: str) -> List[str]:
    """Run structural validation, then llms.txt validation if the structure is sound."""
    errors = validate_structure(text)
    if errors:
        return errors
    return validate_llms_txt(text)
