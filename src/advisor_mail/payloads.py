from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

# ----------------------------
# Request Builders
# ----------------------------

def _compact(values: Dict[str, Any], drop_empty: bool = True) -> Dict[str, Any]:
    """Drop absent fields: None, and empty lists or dicts unless ``drop_empty`` is off."""
    return {
        key: value for key, value in values.items()
        if value is not None and not (drop_empty and isinstance(value, (list, dict)) and not value)
    }


class RequestBuilder:
    """Mixin turning a dataclass of optional fields into a JSON request body."""

    def to_body(self) -> Dict[str, Any]:
        return _compact({f.name: getattr(self, f.name) for f in fields(self)})


class UpdateBuilder(RequestBuilder):
    """Builder for modify calls, where an empty list or dict clears the remote field."""

    def to_body(self) -> Dict[str, Any]:
        return _compact({f.name: getattr(self, f.name) for f in fields(self)}, drop_empty=False)


def tools_from_names(tool_names: Optional[List[str]]) -> Optional[List[Dict[str, Any]]]:
    """Expand tool names such as 'file_search' into tool objects."""
    if not tool_names:
        return None
    return [{"type": name} for name in tool_names]


def file_search_resources(vector_store_ids: List[str]) -> Dict[str, Any]:
    """Tool resources attaching vector stores to the file_search tool."""
    return {"file_search": {"vector_store_ids": list(vector_store_ids)}}


@dataclass
class AssistantRequest(RequestBuilder):
    """
    Body of a create-assistant call.

    Attributes:
        model: Model id, the only required field
        tool_names: Tool types to enable, e.g. ['file_search', 'code_interpreter']
    """
    model: str
    name: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    reasoning_effort: Optional[str] = None
    tool_names: Optional[List[str]] = None
    metadata: Optional[Dict[str, str]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    tool_resources: Optional[Dict[str, Any]] = None

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body.pop("tool_names", None)
        tools = tools_from_names(self.tool_names)
        if tools:
            body["tools"] = tools
        return body


@dataclass
class AssistantUpdate(UpdateBuilder):
    """Body of a modify-assistant call; every field is optional."""
    description: Optional[str] = None
    instructions: Optional[str] = None
    metadata: Optional[Dict[str, str]] = None
    model: Optional[str] = None
    name: Optional[str] = None
    reasoning_effort: Optional[str] = None
    response_format: Optional[Any] = None
    temperature: Optional[float] = None
    tool_resources: Optional[Dict[str, Any]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    top_p: Optional[float] = None


@dataclass
class VectorStoreRequest(RequestBuilder):
    name: Optional[str] = None
    file_ids: Optional[List[str]] = None
    chunking_strategy: Optional[Dict[str, Any]] = None
    expires_after: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, str]] = None


@dataclass
class VectorStoreUpdate(UpdateBuilder):
    name: Optional[str] = None
    expires_after: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, str]] = None


@dataclass
class ThreadRequest(RequestBuilder):
    """
    Body of a create-thread call.

    Attributes:
        messages: Prior context as {'role': ..., 'content': ...} dicts, oldest first
    """
    messages: List[Dict[str, str]] = field(default_factory=list)
    tool_resources: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, str]] = None


@dataclass
class RunRequest(RequestBuilder):
    assistant_id: str
    model: Optional[str] = None
    reasoning_effort: Optional[str] = None
    instructions: Optional[str] = None
    additional_instructions: Optional[str] = None
    additional_messages: Optional[List[Dict[str, Any]]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    metadata: Optional[Dict[str, str]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stream: Optional[bool] = None
    max_prompt_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    truncation_strategy: Optional[Dict[str, Any]] = None
    tool_choice: Optional[Any] = None
    parallel_tool_calls: Optional[bool] = None
    response_format: Optional[Any] = None
