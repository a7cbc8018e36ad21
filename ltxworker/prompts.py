"""
Prompt templates for llms.txt generation.

One template per job kind plus a repair template that feeds validation
errors back to the model.
"""

from typing import List, Optional

from .database import JobKind

# =============================================================================
# PROMPT TEMPLATES
# =============================================================================

_FORMAT_DEFINITION = """\
An llms.txt file is markdown with these sections, in this order:

1. An H1 with the name of the project or site. Exactly one H1.
2. A blockquote with a short summary of the site, containing the key information
   needed to understand the rest of the file.
3. Zero or more markdown blocks of any type except headings, with more detail
   about the site and how to interpret the linked files.
4. Zero or more sections delimited by H2 headers, each containing a "file list":
   a markdown list where every item is a hyperlink [name](url), optionally
   followed by ": notes". An H2 named "Optional" marks links that can be skipped.

Example:
<example>
# Title

> Short summary of the site

Optional details go here

## Docs

- [Link title](https://link_url): Optional link details

## Optional

- [Link title](https://link_url)
</example>"""

_GENERATE_TEMPLATE = """\
You need to generate an llms.txt file for a website. It summarizes the main
content of the website, describes its structure, and lists its outbound links.

{format_definition}

This is the HTML content of the website:
<website>
{content}
</website>

Output only the llms.txt markdown. Do not wrap it in a code fence and do not output any other text."""

_UPDATE_TEMPLATE = """\
You need to update an existing llms.txt file because the website changed.
Keep every section that is still accurate word for word; change only what the
new content contradicts or adds.

{format_definition}

The existing llms.txt file:
<llms_txt>
{prior_document}
</llms_txt>

The updated HTML content of the website:
<website>
{content}
</website>

Output only the updated llms.txt markdown. Do not wrap it in a code fence and do not output any other text."""

_REPAIR_TEMPLATE = """\
{original_prompt}

You previously generated:
<output>
{output}
</output>

That is not a valid llms.txt file because:
<error>
{errors}
</error>

Fix every listed error and output a corrected llms.txt file. Output only the markdown."""


# =============================================================================
# BUILDERS
# =============================================================================


def build_prompt(content: str, kind: JobKind, prior_document: Optional[str] = None) -> str:
    """
    Build the first-attempt prompt.

    UPDATE jobs without a prior document fall back to the generation template.
    """
    if JobKind(kind) is JobKind.UPDATE and prior_document:
        return _UPDATE_TEMPLATE.format(
            format_definition=_FORMAT_DEFINITION,
            prior_document=prior_document,
            content=content,
        )
    return _GENERATE_TEMPLATE.format(format_definition=_FORMAT_DEFINITION, content=content)


def build_repair_prompt(original_prompt: str, output: str, errors: List[str]) -> str:
    """Re-prompt with the rejected output and the accumulated validation errors."""
    return _REPAIR_TEMPLATE.format(
        original_prompt=original_prompt,
        output=output,
        errors="\n".join(f"- {e}" for e in errors),
    )
