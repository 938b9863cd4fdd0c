import logging

from app.constants import DEFAULT_DISBURSER_NAME, DEFAULT_DISBURSER_PHONE, DEFAULT_REGION_NAME
from database.models import Region
from database.repository import AidStore

logger = logging.getLogger(__name__)


async def ensure_initial_setup(store: AidStore) -> bool:
    """Seed a default region and sample disburser into an empty store.

    Returns True when seed rows were created.
    """
    if await store.count_rows(Region) > 0:
        logger.info("Existing regions found; skipping initial setup")
        return False

    region = await store.create_region(DEFAULT_REGION_NAME)
    logger.info(f"Created region with ID: {region.id}")
    await store.create_disburser(
        name=DEFAULT_DISBURSER_NAME,
        phone_number=DEFAULT_DISBURSER_PHONE,
        region_id=region.id,
    )
    logger.info("Created default disburser")
    return True
