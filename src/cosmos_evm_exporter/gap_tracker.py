"""On-demand measurement of the consensus/execution height gap."""

import logging

from .errors import ExporterError
from .height_reader import HeightReader

logger = logging.getLogger(__name__)


class GapTracker:
    """
    Computes ``CL height - EL height`` from fresh readings.

    Nothing is cached: every call queries both chains.
    """

    def __init__(self, height_reader: HeightReader) -> None:
        self.height_reader = height_reader

    async def current_gap(self) -> int:
        """
        Measure the current gap.

        A reader failure propagates as the same exception, with ``layer``
        naming the side that failed.
        """
        try:
            el_height = await self.height_reader.current_el_height()
        except ExporterError as e:
            e.layer = "execution"
            raise

        try:
            cl_height = await self.height_reader.current_cl_height()
        except ExporterError as e:
            e.layer = "consensus"
            raise

        gap = cl_height - el_height
        logger.debug(f"Gap measured: CL {cl_height} - EL {el_height} = {gap}")
        return gap
