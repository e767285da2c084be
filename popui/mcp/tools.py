"""
Tool definitions exposed through ``tools/list``.
"""

from typing import Any, Dict, List

POP_UI_TOOL_NAME = "pop-ui"

SURFACE_MODES = ["show", "get", "set", "describe"]

POP_UI_DESCRIPTION = (
    "Create and display a shared user interface that acts as a visual context layer for the conversation.\n"
    "Use it for games, visualizations, control panels and other interfaces that both the user and the host "
    "can manipulate.\n"
    "After a user interface is shown, call pop-ui in 'get' mode to read back what the user changed."
)

TSX_DESCRIPTION = (
    "A self-contained React component to render.\n"
    "The component must be loadable on its own (no imports beyond react, tailwindcss classes and lucide-react icons).\n"
    "It must define window.getState() returning the current state as a JSON model object,\n"
    "window.setState(json) applying a JSON model object, and\n"
    "window.describeState() returning the JSON schema of that model.\n"
    "It may call window.api.sendToHost(text) from submit buttons and other action elements to report user "
    "actions back to the conversation.\n"
    "Give the root element preferred dimensions and put explicit submit buttons at the bottom of forms and games."
)

POP_UI_TOOLS: List[Dict[str, Any]] = [
    {
        "name": POP_UI_TOOL_NAME,
        "description": POP_UI_DESCRIPTION,
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Name of the user interface. Used to reference it in every mode.",
                },
                "mode": {
                    "type": "string",
                    "enum": SURFACE_MODES,
                    "description": (
                        "'show' to create/update a user interface (pass tsx) or show an existing one from ui://list\n"
                        "'get' to read the current model state\n"
                        "'set' to inject a model state\n"
                        "'describe' to read the JSON schema of the model state\n"
                        "Defaults to 'show'."
                    ),
                },
                "json": {
                    "type": "string",
                    "description": "JSON model object used as initial or updated state. Valid for modes 'show' and 'set'.",
                },
                "tsx": {
                    "type": "string",
                    "description": TSX_DESCRIPTION,
                },
            },
            "required": ["name"],
        },
    },
]


def get_tools() -> List[Dict[str, Any]]:
    return list(POP_UI_TOOLS)
