"""Prompts for the single-file app generator.

This module contains the prompt templates sent to the agent:
- APP_GENERATOR_PROMPT: System prompt describing the output contract
- STORAGE_API_SECTION: How generated apps persist data through TroveStorage
- build_task_prompt: Per-request task text for create and edit runs
"""

from models.schemas import GenerationRequest

APP_GENERATOR_PROMPT = """\
You are an expert web developer. Build the user's request as ONE self-contained HTML file.

## Output Contract
1. Reply with the HTML document only: no explanations, no markdown, no code fences.
2. Put all CSS in <style> tags and all JavaScript in <script> tags.
3. Use modern CSS (flexbox, grid, custom properties) and vanilla JavaScript.
4. The app must work offline: no CDNs, web fonts or other external resources.
5. Make it responsive, with a clean, minimal design, good typography and spacing.
6. Handle errors in JavaScript instead of letting the page break.
7. Start the reply with <!DOCTYPE html> and end it with </html>."""

STORAGE_API_SECTION = """\
## Data Persistence
When the app needs to keep data between sessions, use the global TroveStorage API.
It is injected into the page for you; do not define it yourself.
- await TroveStorage.get(key)         -> stored value or null
- await TroveStorage.set(key, value)  -> stores any JSON-serializable value
- await TroveStorage.delete(key)      -> removes one key
- await TroveStorage.clear()          -> removes everything
- await TroveStorage.getAll()         -> object with every key and value

Example:
  const todos = (await TroveStorage.get('todos')) || [];
  await TroveStorage.set('todos', todos);

Do NOT use localStorage or sessionStorage; they are not persisted."""

OUTPUT_REMINDER = (
    "Remember: output ONLY the complete HTML file, starting with "
    "<!DOCTYPE html> and ending with </html>."
)


def compose_prompt_sections(*sections: str) -> str:
    """Compose prompt sections into a single deterministic prompt."""
    cleaned = [section.strip() for section in sections if section and section.strip()]
    return "\n\n".join(cleaned)


def get_system_prompt() -> str:
    """Return the system prompt shared by create and edit runs."""
    return compose_prompt_sections(APP_GENERATOR_PROMPT, STORAGE_API_SECTION)


def build_task_prompt(request: GenerationRequest) -> str:
    """Build the user-turn prompt for a generation request.

    Edit runs point the agent at the existing document, which it may inspect
    with the Read tool; create runs only describe the new app.
    """
    if request.is_edit:
        instruction = (
            f'Update the existing app "{request.name}" based on the current HTML '
            f'file at "{request.edit_path}". Use the Read tool to inspect the '
            "existing file before making changes. Apply the new requirements "
            "below while keeping working parts unless they conflict."
        )
    else:
        instruction = (
            f'Create a web app called "{request.name}" with the following functionality:'
        )

    return compose_prompt_sections(instruction, request.prompt, OUTPUT_REMINDER)
