import logging
from typing import List

from .clients.base import LLMClient
from .models.request import ModelInfo

logger = logging.getLogger(__name__)


async def list_service_models(client: LLMClient) -> List[ModelInfo]:
    """Models offered by the client's service, sorted by name.

    Raises UnsupportedError when the service has no model listing.
    """
    models = await client.list_models()
    unique = {}
    for model in models:
        unique.setdefault(model.name, model)
    logger.debug(f"Service '{client.name}' returned {len(models)} models ({len(unique)} unique)")
    return sorted(unique.values(), key=lambda m: m.name.lower())
