from .chat import ChatCompletionResponse, ChatRequest, Choice, Message, ResponseMessage

__all__ = ["ChatCompletionResponse", "ChatRequest", "Choice", "Message", "ResponseMessage"]
