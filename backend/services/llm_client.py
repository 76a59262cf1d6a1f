"""LLM Client for answer generation over the Groq API."""
import re
import time
from dataclasses import dataclass
from typing import List, Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, GENERATION_TEMPERATURE

logger = logging.getLogger(__name__)

PUBLIC_SYSTEM_PROMPT = """You are IlimexBot, the public-facing assistant for Ilimex Ltd, creators of the Flufence UVC air-sterilisation system.

- Help users understand Ilimex, Flufence and its trials in a clear, safe, non-promotional way.
- Professional, concise, plain English. No hype.
- Never guarantee yield, disease reduction or any specific outcome; results are site-specific.
- Do not provide lab protocols, UVC dosage calculations, engineering instructions, pricing, or veterinary, medical, legal or tax advice.
- If information is not in the provided material, say "I don't have access to that information yet."
"""

INTERNAL_SYSTEM_PROMPT = """You are IlimexBot, the internal assistant for the Ilimex team.

- Support drafting, analysis and summarising of trial reports while keeping scientific accuracy and regulatory caution.
- Only use information from the conversation, the uploaded documents and the Ilimex knowledge pack. Never invent data.
- Frame trial results as preliminary and site-specific; state assumptions explicitly.
- Be structured: headings, bullets and numbers where they help.
"""

EVIDENCE_INSTRUCTIONS = """Ground your answer in the evidence below. Refer to evidence by its [number] when you use it.
If the evidence does not cover the question, say so clearly.

Evidence:
{context}"""

PARA_MARKER = "<PARA>"
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9])")


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for the answer generation service (Groq chat completions)."""

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.client = Groq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    def generate(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: int = 700
    ) -> LLMResponse:
        """
        Generate a reply for a prepared message list.

        Args:
            model: Model name
            messages: Chat messages including system prompts
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=GENERATION_TEMPERATURE
            )
        except RateLimitError as e:
            self._raise(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )
        except AuthenticationError as e:
            self._raise(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )
        except APITimeoutError as e:
            self._raise("TIMEOUT_ERROR", "Request timed out. Please try again.", model, start_time, e)
        except APIError as e:
            self._raise("API_ERROR", f"Groq API error: {e}", model, start_time, e)
        except Exception as e:
            self._raise(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {e}",
                model, start_time, e, error_type=type(e).__name__
            )

        latency_ms = int((time.time() - start_time) * 1000)
        text = response.choices[0].message.content or ""
        tokens_input = response.usage.prompt_tokens
        tokens_output = response.usage.completion_tokens

        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model
        )

    @staticmethod
    def _raise(code: str, message: str, model: str, start_time: float, original: Exception, **extra):
        latency_ms = int((time.time() - start_time) * 1000)
        error = LLMError(
            code=code,
            message=message,
            details={
                "model": model,
                "latency_ms": latency_ms,
                "original_error": str(original),
                **extra
            }
        )
        logger.error(
            f"Generation failed ({code}): model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"context": {"error_code": code, "error_details": error.details}}
        )
        raise LLMClientError(error) from original

    @staticmethod
    def build_messages(
        conversation: List[Dict[str, str]],
        evidence_context: Optional[str] = None,
        mode: str = "public"
    ) -> List[Dict[str, str]]:
        """
        Build the message list: system prompt, evidence (if any), then the conversation.

        Without evidence the answer is generated ungrounded.

        Args:
            conversation: Prior user/assistant messages, last one is the question
            evidence_context: Rendered evidence blocks
            mode: "public" or "internal"

        Returns:
            Messages ready for generate()
        """
        system_prompt = INTERNAL_SYSTEM_PROMPT if mode == "internal" else PUBLIC_SYSTEM_PROMPT
        messages = [{"role": "system", "content": system_prompt}]

        if evidence_context:
            messages.append({
                "role": "system",
                "content": EVIDENCE_INSTRUCTIONS.format(context=evidence_context)
            })

        messages.extend(
            {"role": m["role"], "content": m["content"]}
            for m in conversation
            if m["role"] in ("user", "assistant")
        )
        return messages

    @staticmethod
    def format_reply(raw: str) -> str:
        """
        Split a reply into paragraphs.

        Explicit <PARA> markers win; otherwise sentences are grouped two per
        paragraph.
        """
        if not raw or not raw.strip():
            return "Sorry, we could not generate a reply just now."

        if PARA_MARKER in raw:
            paragraphs = [p.strip() for p in raw.split(PARA_MARKER) if p.strip()]
            return "\n\n".join(paragraphs)

        sentences = [s.strip() for s in SENTENCE_SPLIT_RE.split(raw.strip()) if s.strip()]
        paragraphs = [" ".join(sentences[i:i + 2]) for i in range(0, len(sentences), 2)]
        return "\n\n".join(paragraphs)
