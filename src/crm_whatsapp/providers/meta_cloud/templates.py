"""
WhatsApp Template Components

Builds the `components` array of a template message.
Only the parameter groups the caller supplied produce a component.
"""

from typing import Any

from crm_whatsapp.contracts.payloads import TemplateParams


def _text_parameters(values: list[str]) -> list[dict[str, Any]]:
    return [{"type": "text", "text": str(value)} for value in values]


def build_template_components(params: TemplateParams | None) -> list[dict[str, Any]]:
    """
    Build template components payload from parameter groups.

    Args:
        params: Header/body text values and quick-reply button payloads

    Returns:
        Components list for API request (empty if nothing was supplied)
    """
    if params is None:
        return []

    components: list[dict[str, Any]] = []

    if params.header:
        components.append({
            "type": "header",
            "parameters": _text_parameters(params.header),
        })

    if params.body:
        components.append({
            "type": "body",
            "parameters": _text_parameters(params.body),
        })

    # One component per quick-reply button, indexed by position
    for index, payload in enumerate(params.buttons or []):
        components.append({
            "type": "button",
            "sub_type": "quick_reply",
            "index": str(index),
            "parameters": [{"type": "payload", "payload": payload}],
        })

    return components
