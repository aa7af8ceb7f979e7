"""
OpenRouter chat completions over httpx

Streaming requests return OpenAI-compatible server-sent events; the helpers
here reduce that event stream to text deltas and a running total.
"""

import json
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Union

import httpx

from clarity.config.settings import LLM_CONFIG, get_openrouter_api_key
from clarity.errors import (
    ConfigurationError,
    RequestFailed,
    StreamDecodeError,
    StreamReadFailed,
    UpstreamError,
)
from clarity.llm.prompts import SYSTEM_PROMPT, build_analysis_prompt
from clarity.tools.cancellation import CancellationToken, run_cancellable
from clarity.tools.utils import Logger

SSE_DATA_PREFIX = 'data: '
SSE_DONE = '[DONE]'

UNAUTHORIZED_MESSAGE = "API key invalid or account issue. Go to openrouter.ai to check your account."

ContentCallback = Callable[[str], None]


# ============================================================================
# SSE decoding
# ============================================================================

def decode_delta(payload: str) -> Optional[str]:
    """
    Get choices[0].delta.content from one SSE JSON payload

    Raises:
        StreamDecodeError: payload is not JSON
    """
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(f"Invalid stream fragment: {e}")

    try:
        content = event['choices'][0]['delta'].get('content')
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) else None


async def iter_sse_deltas(lines: Union[AsyncIterator[str], Iterable[str]]) -> AsyncIterator[str]:
    """
    Yield non-empty text deltas from raw SSE text

    lines may yield single lines or multi-line chunks. Only "data: " payloads
    are read, "[DONE]" ends the stream and undecodable payloads are skipped.
    """
    if hasattr(lines, '__aiter__'):
        source = lines
    else:
        async def _wrap():
            for item in lines:
                yield item
        source = _wrap()

    async for chunk in source:
        for line in chunk.splitlines():
            if not line.startswith(SSE_DATA_PREFIX):
                continue
            payload = line[len(SSE_DATA_PREFIX):].strip()
            if payload == SSE_DONE:
                return
            try:
                delta = decode_delta(payload)
            except StreamDecodeError:
                continue
            if delta:
                yield delta


async def accumulate_deltas(deltas: AsyncIterator[str], on_content: Optional[ContentCallback] = None) -> str:
    """Concatenate deltas, reporting the running total after each one"""
    content = ''
    async for delta in deltas:
        content += delta
        if on_content is not None:
            on_content(content)
    return content


async def accumulate_stream(lines, on_content: Optional[ContentCallback] = None) -> str:
    """Reduce a raw SSE stream to its full text"""
    return await accumulate_deltas(iter_sse_deltas(lines), on_content)


# ============================================================================
# Error bodies
# ============================================================================

def parse_error_message(status_code: int, body: str) -> str:
    """Human-readable message for a failed LLM response"""
    if status_code == 401:
        return UNAUTHORIZED_MESSAGE

    message = f"API error: {status_code}"
    try:
        error_json = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return message

    if isinstance(error_json, dict):
        error = error_json.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str) and error:
            return error
    return message


# ============================================================================
# Client
# ============================================================================

class UpstreamStream:
    """An open streaming response; deltas() drains and closes it"""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self._client = client
        self._response = response

    async def deltas(self) -> AsyncIterator[str]:
        try:
            async for delta in iter_sse_deltas(self._response.aiter_lines()):
                yield delta
        except httpx.HTTPError as e:
            Logger.error(f"LLM stream read error: {type(e).__name__}: {e}")
            raise StreamReadFailed("Failed to read response stream")
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()
        await self._client.aclose()


class AnalysisClient:
    """
    Streaming analysis requests against the configured LLM endpoint

    Args:
        api_key: Bearer key; read from the environment per request when None
        model: Model slug
        base_url: OpenRouter compatible API root
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model or LLM_CONFIG['model']
        self.base_url = (base_url or LLM_CONFIG['base_url']).rstrip('/')
        self.timeout = timeout or LLM_CONFIG['timeout']
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        api_key = self.api_key or get_openrouter_api_key()
        if not api_key:
            raise ConfigurationError("API key not configured. Add OPENROUTER_API_KEY to .env")
        return {
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
            'HTTP-Referer': LLM_CONFIG['referer'],
            'X-Title': LLM_CONFIG['title'],
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def open_stream(self, messages: List[Dict[str, str]]) -> UpstreamStream:
        """
        Send a streaming chat completion and check its status

        Raises:
            ConfigurationError: no API key
            RequestFailed: transport error or non-2xx answer
        """
        headers = self._headers()
        payload = {
            'model': self.model,
            'messages': messages,
            'stream': True,
        }

        client = self._client()
        try:
            request = client.build_request(
                'POST', f'{self.base_url}/chat/completions', headers=headers, json=payload
            )
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            Logger.error(f"LLM connection error: {type(e).__name__}: {e}")
            raise RequestFailed("Analysis request failed: could not reach the LLM service")
        except BaseException:
            await client.aclose()
            raise

        if not response.is_success:
            body = (await response.aread()).decode('utf-8', errors='replace')
            await response.aclose()
            await client.aclose()
            Logger.error(f"LLM API error: {response.status_code} - {body[:500]}")
            raise RequestFailed(parse_error_message(response.status_code, body), response.status_code)

        return UpstreamStream(client, response)

    async def stream_analysis(
        self,
        conversation_text: str,
        analysis_type: str,
        title: Optional[str] = None,
    ) -> UpstreamStream:
        """Open the stream for one analysis type"""
        prompt = build_analysis_prompt(analysis_type, conversation_text, title)
        return await self.open_stream([
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': prompt},
        ])

    async def analyze(
        self,
        conversation_text: str,
        analysis_type: str,
        title: Optional[str] = None,
        on_content: Optional[ContentCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Run one analysis and return its full text

        on_content receives the accumulated text after every delta. When
        cancel_token fires, the stream is abandoned and Cancelled is raised.
        """
        async def _run() -> str:
            stream = await self.stream_analysis(conversation_text, analysis_type, title)
            return await accumulate_deltas(stream.deltas(), on_content)

        return await run_cancellable(_run(), cancel_token)


async def generate_chatbot_response(
    system_prompt: str,
    user_message: str,
    temperature: float,
    max_tokens: int,
    model: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Non-streaming chat completion

    Raises:
        ConfigurationError: no API key
        RequestFailed: transport error or non-2xx answer
        UpstreamError: the answer carried no content
    """
    client = AnalysisClient(model=model, transport=transport)
    headers = client._headers()

    payload: Dict[str, Any] = {
        'model': client.model,
        'messages': [
            {'role': 'system', 'content': system_prompt},
            {'role': 'user', 'content': user_message},
        ],
        'max_tokens': max_tokens,
        'temperature': temperature,
    }

    try:
        async with client._client() as http:
            response = await http.post(
                f'{client.base_url}/chat/completions',
                headers=headers,
                json=payload,
            )
    except httpx.TimeoutException:
        Logger.error("LLM timeout error - request took too long")
        raise RequestFailed("The LLM request timed out")
    except httpx.HTTPError as e:
        Logger.error(f"LLM connection error: {type(e).__name__}: {e}")
        raise RequestFailed("Could not reach the LLM service")

    if not response.is_success:
        Logger.error(f"LLM API error: {response.status_code} - {response.text[:500]}")
        raise RequestFailed(parse_error_message(response.status_code, response.text), response.status_code)

    try:
        content = response.json()['choices'][0]['message']['content']
    except (ValueError, KeyError, IndexError, TypeError):
        raise UpstreamError("The LLM returned an unexpected response")

    if not content:
        raise UpstreamError("The LLM returned an empty response")
    return content
