"""Protobuf schema of the ``llm.LLMService`` backend.

The message classes are built at import time from a ``FileDescriptorProto``
so the package ships no generated code. The schema is equivalent to::

    syntax = "proto3";
    package llm;

    service LLMService {
      rpc SimpleChat(SimpleChatRequest) returns (SimpleChatResponse);
      rpc Chat(stream ChatRequest) returns (stream ChatResponse);
    }

    message ChatRequest {
      oneof request {
        StartChatRequest start = 1;
        UserMessage message = 2;
        AbortRequest abort = 3;
        ToolResult tool_result = 4;
      }
    }

    message ChatResponse {
      oneof response {
        SessionStarted session_started = 1;
        StreamChunk chunk = 2;
        ToolCall tool_call = 3;
        CompletionResponse completion = 4;
        ErrorResponse error = 5;
        AbortedResponse aborted = 6;
      }
    }

Public API (the "studs"):
    SIMPLE_CHAT_METHOD, CHAT_METHOD: Fully qualified gRPC method paths
    Message, SimpleChatRequest, SimpleChatResponse, StartChatRequest,
    UserMessage, AbortRequest, ToolResult, ChatRequest, SessionStarted,
    StreamChunk, ToolCall, CompletionResponse, ErrorResponse,
    AbortedResponse, ChatResponse: Message classes
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "llm"
SERVICE = f"{PACKAGE}.LLMService"
SIMPLE_CHAT_METHOD = f"/{SERVICE}/SimpleChat"
CHAT_METHOD = f"/{SERVICE}/Chat"

_F = descriptor_pb2.FieldDescriptorProto

# name -> [(field_name, number, type, message_type_name, repeated)], oneof name
_SCHEMA: dict[str, tuple[list[tuple[str, int, int, str | None, bool]], str | None]] = {
    "Message": (
        [
            ("role", 1, _F.TYPE_STRING, None, False),
            ("content", 2, _F.TYPE_STRING, None, False),
        ],
        None,
    ),
    "SimpleChatRequest": (
        [
            ("api_key", 1, _F.TYPE_STRING, None, False),
            ("messages", 2, _F.TYPE_MESSAGE, "Message", True),
            ("system_prompt", 3, _F.TYPE_STRING, None, False),
            ("model", 4, _F.TYPE_STRING, None, False),
            ("max_tokens", 5, _F.TYPE_INT32, None, False),
            ("temperature", 6, _F.TYPE_FLOAT, None, False),
        ],
        None,
    ),
    "SimpleChatResponse": (
        [
            ("content", 1, _F.TYPE_STRING, None, False),
            ("model", 2, _F.TYPE_STRING, None, False),
            ("input_tokens", 3, _F.TYPE_INT64, None, False),
            ("output_tokens", 4, _F.TYPE_INT64, None, False),
            ("cost_usd", 5, _F.TYPE_DOUBLE, None, False),
            ("latency_ms", 6, _F.TYPE_INT64, None, False),
            ("stop_reason", 7, _F.TYPE_STRING, None, False),
        ],
        None,
    ),
    "StartChatRequest": (
        [
            ("api_key", 1, _F.TYPE_STRING, None, False),
            ("system_prompt", 2, _F.TYPE_STRING, None, False),
            ("model", 3, _F.TYPE_STRING, None, False),
            ("max_tokens", 4, _F.TYPE_INT32, None, False),
            ("temperature", 5, _F.TYPE_FLOAT, None, False),
            ("messages", 6, _F.TYPE_MESSAGE, "Message", True),
        ],
        None,
    ),
    "UserMessage": ([("content", 1, _F.TYPE_STRING, None, False)], None),
    "AbortRequest": ([("reason", 1, _F.TYPE_STRING, None, False)], None),
    "ToolResult": (
        [
            ("tool_call_id", 1, _F.TYPE_STRING, None, False),
            ("result", 2, _F.TYPE_STRING, None, False),
            ("is_error", 3, _F.TYPE_BOOL, None, False),
        ],
        None,
    ),
    "ChatRequest": (
        [
            ("start", 1, _F.TYPE_MESSAGE, "StartChatRequest", False),
            ("message", 2, _F.TYPE_MESSAGE, "UserMessage", False),
            ("abort", 3, _F.TYPE_MESSAGE, "AbortRequest", False),
            ("tool_result", 4, _F.TYPE_MESSAGE, "ToolResult", False),
        ],
        "request",
    ),
    "SessionStarted": (
        [
            ("session_id", 1, _F.TYPE_STRING, None, False),
            ("provider", 2, _F.TYPE_STRING, None, False),
            ("model", 3, _F.TYPE_STRING, None, False),
        ],
        None,
    ),
    "StreamChunk": (
        [
            ("content", 1, _F.TYPE_STRING, None, False),
            ("index", 2, _F.TYPE_INT32, None, False),
        ],
        None,
    ),
    "ToolCall": (
        [
            ("tool_call_id", 1, _F.TYPE_STRING, None, False),
            ("name", 2, _F.TYPE_STRING, None, False),
            ("arguments_json", 3, _F.TYPE_STRING, None, False),
        ],
        None,
    ),
    "CompletionResponse": (
        [
            ("full_content", 1, _F.TYPE_STRING, None, False),
            ("stop_reason", 2, _F.TYPE_STRING, None, False),
            ("input_tokens", 3, _F.TYPE_INT64, None, False),
            ("output_tokens", 4, _F.TYPE_INT64, None, False),
            ("cost_usd", 5, _F.TYPE_DOUBLE, None, False),
            ("latency_ms", 6, _F.TYPE_INT64, None, False),
        ],
        None,
    ),
    "ErrorResponse": (
        [
            ("code", 1, _F.TYPE_STRING, None, False),
            ("message", 2, _F.TYPE_STRING, None, False),
            ("retryable", 3, _F.TYPE_BOOL, None, False),
        ],
        None,
    ),
    "AbortedResponse": ([("reason", 1, _F.TYPE_STRING, None, False)], None),
    "ChatResponse": (
        [
            ("session_started", 1, _F.TYPE_MESSAGE, "SessionStarted", False),
            ("chunk", 2, _F.TYPE_MESSAGE, "StreamChunk", False),
            ("tool_call", 3, _F.TYPE_MESSAGE, "ToolCall", False),
            ("completion", 4, _F.TYPE_MESSAGE, "CompletionResponse", False),
            ("error", 5, _F.TYPE_MESSAGE, "ErrorResponse", False),
            ("aborted", 6, _F.TYPE_MESSAGE, "AbortedResponse", False),
        ],
        "response",
    ),
}


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="levee/llm.proto", package=PACKAGE, syntax="proto3"
    )
    for message_name, (fields, oneof) in _SCHEMA.items():
        message = file_proto.message_type.add(name=message_name)
        if oneof:
            message.oneof_decl.add(name=oneof)
        for field_name, number, field_type, type_name, repeated in fields:
            field = message.field.add(
                name=field_name,
                number=number,
                type=field_type,
                label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
            )
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"
            if oneof:
                field.oneof_index = 0

    service = file_proto.service.add(name="LLMService")
    service.method.add(
        name="SimpleChat",
        input_type=f".{PACKAGE}.SimpleChatRequest",
        output_type=f".{PACKAGE}.SimpleChatResponse",
    )
    service.method.add(
        name="Chat",
        input_type=f".{PACKAGE}.ChatRequest",
        output_type=f".{PACKAGE}.ChatResponse",
        client_streaming=True,
        server_streaming=True,
    )
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str) -> type:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Message = _message_class("Message")
SimpleChatRequest = _message_class("SimpleChatRequest")
SimpleChatResponse = _message_class("SimpleChatResponse")
StartChatRequest = _message_class("StartChatRequest")
UserMessage = _message_class("UserMessage")
AbortRequest = _message_class("AbortRequest")
ToolResult = _message_class("ToolResult")
ChatRequest = _message_class("ChatRequest")
SessionStarted = _message_class("SessionStarted")
StreamChunk = _message_class("StreamChunk")
ToolCall = _message_class("ToolCall")
CompletionResponse = _message_class("CompletionResponse")
ErrorResponse = _message_class("ErrorResponse")
AbortedResponse = _message_class("AbortedResponse")
ChatResponse = _message_class("ChatResponse")


__all__ = [
    "SIMPLE_CHAT_METHOD",
    "CHAT_METHOD",
    "Message",
    "SimpleChatRequest",
    "SimpleChatResponse",
    "StartChatRequest",
    "UserMessage",
    "AbortRequest",
    "ToolResult",
    "ChatRequest",
    "SessionStarted",
    "StreamChunk",
    "ToolCall",
    "CompletionResponse",
    "ErrorResponse",
    "AbortedResponse",
    "ChatResponse",
]
