from __future__ import annotations

from .openai_client import OpenAIClient


class PerplexityClient(OpenAIClient):
    """Perplexity speaks the OpenAI Chat Completions protocol at its own host.

    Authentication: a key from the credential store or env var `PERPLEXITY_API_KEY`.
    """

    name = "perplexity"
    label = "Perplexity"
    env_var = "PERPLEXITY_API_KEY"

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.perplexity.ai"
