"""Tool declarations offered to the interpreter, in OpenAI function-calling format."""

from typing import Any, Dict, List, Optional


def _tool(name: str, description: str, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    function: Dict[str, Any] = {"name": name, "description": description}
    function["parameters"] = parameters or {"type": "object", "properties": {}}
    return {"type": "function", "function": function}


COMMAND_TOOLS: List[Dict[str, Any]] = [
    _tool(
        "start_recording",
        "Start recording a patient session or clinical note. Use this when the user wants to begin "
        "a recording session, start transcribing, or start a new session in Heidi.",
    ),
    _tool(
        "stop_recording",
        "Stop the current recording session. Use this when the user wants to end or finish the recording.",
    ),
    _tool(
        "emr_assistance",
        "Provide assistance with EMR (Electronic Medical Records), patient records, medical documentation, "
        "or any healthcare-related queries.",
    ),
    _tool(
        "open_url",
        "Open a URL in the default web browser.",
        {
            "type": "object",
            "properties": {"url": {"type": "string", "description": "The URL to open in the browser"}},
            "required": ["url"],
        },
    ),
    _tool(
        "click_screen",
        "Click at specific screen coordinates.",
        {
            "type": "object",
            "properties": {
                "x": {"type": "number", "description": "The X coordinate to click at"},
                "y": {"type": "number", "description": "The Y coordinate to click at"},
            },
            "required": ["x", "y"],
        },
    ),
    _tool(
        "type_text",
        "Type text using the keyboard, e.g. into an input field.",
        {
            "type": "object",
            "properties": {"text": {"type": "string", "description": "The text to type"}},
            "required": ["text"],
        },
    ),
    _tool(
        "take_screenshot",
        "Take a screenshot of the current screen.",
    ),
    _tool(
        "start_heidi_transcription",
        "Open Heidi Health scribe and start transcription.",
    ),
]

TOOL_NAMES = tuple(t["function"]["name"] for t in COMMAND_TOOLS)

_ACKNOWLEDGMENTS = {
    "start_recording": "Sure, starting the recording now.",
    "stop_recording": "Got it, stopping the recording.",
    "emr_assistance": "Sure, I'll help you with auto filling the form.",
    "open_url": "Opening that for you.",
    "click_screen": "Clicking there for you.",
    "type_text": "Typing that now.",
    "take_screenshot": "Taking a screenshot.",
    "start_heidi_transcription": "Starting Heidi transcription for you.",
}

FALLBACK_ACKNOWLEDGMENT = "I'm not sure what you'd like me to do. Could you try again?"


def default_acknowledgment(tool_name: Optional[str]) -> str:
    """Reply used when the model called a tool without saying anything."""
    if tool_name is None:
        return FALLBACK_ACKNOWLEDGMENT
    return _ACKNOWLEDGMENTS.get(tool_name, FALLBACK_ACKNOWLEDGMENT)
