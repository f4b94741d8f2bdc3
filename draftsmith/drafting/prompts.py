"""Fixed prompt blocks shared by generation and refinement."""

CLOSING_DIRECTIVES = (
    "Instructions:\n"
    "- Use the case information provided to generate the content\n"
    "- Extract relevant facts and details from the case information\n"
    "- Follow the structure and style of the default content\n"
    "- Ensure the content is professional and legally appropriate\n"
    "- Do not include placeholders or variable syntax in the final output\n"
    "- Format headings and paragraphs appropriately"
)

SYSTEM_PREAMBLE = (
    "You are a professional legal document assistant. Generate content based on the "
    "case information provided in the user message. Use the facts and details from the "
    "case information to create professional, legally appropriate content."
)

KEEP_EXISTING_DIRECTIVE = (
    "Please expand and improve the existing content based on the user's instruction. "
    "Keep the structure and key points, but add more detail and refinement as requested."
)

REWRITE_DIRECTIVE = (
    "Please rewrite this section completely based on the user's instruction. "
    "Generate new content that addresses the instruction while maintaining professional "
    "legal writing standards. The previous content is reference only and is not authoritative."
)


def user_message(context: str) -> str:
    """Present the evidence as direct input rather than documents to look up."""
    return (
        "CASE INFORMATION:\n\n"
        f"{context}\n\n"
        "---\n\n"
        "Please generate the content using the case information provided above."
    )


def generation_failed_placeholder(section: str) -> str:
    return (
        f"[Content generation for {section} section encountered an issue. "
        "Please regenerate this section.]"
    )


def refinement_failed_placeholder(section: str) -> str:
    return f"[Content refinement for {section} section encountered an issue. Please try again.]"
