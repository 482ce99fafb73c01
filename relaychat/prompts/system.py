from relaychat.config.constants import REASONING_MODEL_SELECTOR, TITLE_MAX_LENGTH

REGULAR_PROMPT = (
    "You are a friendly assistant! Keep your responses concise and helpful."
)

ARTIFACTS_PROMPT = (
    "# Documents\n"
    "- Documents are a side panel shown next to the conversation, used for "
    "writing, editing and other content creation.\n"
    "- Use create_document for substantial content (over 10 lines) or content "
    "the user is likely to save or reuse, and when explicitly asked to create a "
    "document. Use kind 'code' for code and always specify the language.\n"
    "- Do not use create_document for informational or conversational replies, "
    "or when asked to keep the answer in the chat.\n"
    "- Use update_document only when asked to change an existing document; "
    "prefer full rewrites for major changes and targeted edits otherwise.\n"
    "- Never update a document immediately after creating it; wait for user "
    "feedback or a request to update it.\n"
    "- Use request_suggestions when the user asks for suggested edits to a "
    "document.\n"
)

TITLE_PROMPT = (
    "- You will generate a short title based on the first message a user "
    "begins a conversation with.\n"
    f"- Ensure it is not more than {TITLE_MAX_LENGTH} characters long.\n"
    "- The title should be a summary of the user's message.\n"
    "- Do not use quotes or colons."
)

SUGGESTIONS_PROMPT = (
    "You are a writing assistant. Given a piece of writing, please offer "
    "suggestions to improve the piece of writing and describe the change. It is "
    "very important for the edits to contain full sentences instead of just "
    "words. Max 5 suggestions.\n"
    "Respond with a JSON array only. Each item has the keys originalSentence, "
    "suggestedSentence and description."
)

_TEXT_DOCUMENT_PROMPT = (
    "Write about the given topic. Markdown is supported. Use headings wherever "
    "appropriate."
)

_CODE_DOCUMENT_PROMPT = (
    "You are a code generator that creates self-contained, executable code "
    "snippets. Each snippet should be complete and runnable on its own, include "
    "helpful comments, be concise, and avoid external dependencies and network "
    "access. Return only the code."
)


def system_prompt(selector: str) -> str:
    """System prompt for a chat model selector.

    Reasoning models run without tools, so they do not get the document
    instructions.
    """
    if selector == REASONING_MODEL_SELECTOR:
        return REGULAR_PROMPT
    return f"{REGULAR_PROMPT}\n\n{ARTIFACTS_PROMPT}"


def document_prompt(kind: str) -> str:
    if kind == "code":
        return _CODE_DOCUMENT_PROMPT
    return _TEXT_DOCUMENT_PROMPT


def update_document_prompt(current_content: str | None, kind: str) -> str:
    label = "code snippet" if kind == "code" else "document"
    return (
        f"Improve the following contents of the {label} based on the given "
        f"prompt.\n\n{current_content or ''}"
    )
