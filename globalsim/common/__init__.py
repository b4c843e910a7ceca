from globalsim.common.logging_setup import get_logger

logger = get_logger("globalsim.common")
