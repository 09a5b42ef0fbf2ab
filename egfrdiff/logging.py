"""
Logging for egfrdiff simulators.

Every module logs under the ``egfrdiff`` namespace; simulators wrap their
logger in a :class:`SimulatorLoggerAdapter` so that entries carry the
simulator's name. The level defaults to WARNING and can be set with the
``EGFRDIFF_LOG`` environment variable, by name (e.g. ``DEBUG`` or
``EXTENDED_DEBUG``) or as an integer. ``EXTENDED_DEBUG`` adds one entry per
time step.
"""
import logging
import os
import warnings
import egfrdiff

LOG_LEVEL_ENV_VAR = 'EGFRDIFF_LOG'
BASE_LOGGER_NAME = 'egfrdiff'
EXTENDED_DEBUG = 5
NAMED_LOG_LEVELS = {'NOTSET': logging.NOTSET,
                    'EXTENDED_DEBUG': EXTENDED_DEBUG,
                    'DEBUG': logging.DEBUG,
                    'INFO': logging.INFO,
                    'WARNING': logging.WARNING,
                    'ERROR': logging.ERROR,
                    'CRITICAL': logging.CRITICAL}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logging.addLevelName(EXTENDED_DEBUG, 'EXTENDED_DEBUG')


def _level_from_environment(default):
    value = os.environ.get(LOG_LEVEL_ENV_VAR)
    if value is None:
        return default
    if value in NAMED_LOG_LEVELS:
        return NAMED_LOG_LEVELS[value]
    try:
        return int(value)
    except ValueError:
        raise ValueError('Environment variable {} contains an invalid value '
                         '"{}". If set, its value must be one of {} '
                         '(case-sensitive) or an integer log level.'.format(
                             LOG_LEVEL_ENV_VAR, value,
                             ', '.join(NAMED_LOG_LEVELS)))


def setup_logger(level=logging.WARNING, console_output=True,
                 file_output=False):
    """
    (Re)configure the base ``egfrdiff`` logger

    Existing handlers of the base logger are replaced. Most code should call
    :func:`get_logger`, which sets the base logger up on first use.

    Parameters
    ----------
    level : int
        Log level, overridden by the ``EGFRDIFF_LOG`` environment variable.
    console_output : bool
        Log to stderr if True (default).
    file_output : str or False
        Also write log entries to this file.

    Returns
    -------
    The base logging.Logger
    """
    log = logging.getLogger(BASE_LOGGER_NAME)
    log.setLevel(_level_from_environment(level))
    for handler in list(log.handlers):
        log.removeHandler(handler)

    log_fmt = logging.Formatter(LOG_FORMAT)
    if console_output:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(log_fmt)
        log.addHandler(stream_handler)
    if file_output:
        file_handler = logging.FileHandler(file_output)
        file_handler.setFormatter(log_fmt)
        log.addHandler(file_handler)

    log.info('egfrdiff %s logging at level %s', egfrdiff.__version__,
             logging.getLevelName(log.level))
    return log


def get_logger(logger_name=BASE_LOGGER_NAME, name=None, log_level=None):
    """
    Returns (if extant) or creates an egfrdiff logger

    Parameters
    ----------
    logger_name : string
        Namespace of the logger, typically ``__name__`` or
        ``self.__module__``
    name : string, optional
        Simulator name to prepend to log entries; a
        :class:`SimulatorLoggerAdapter` is returned when given
    log_level : bool or int, optional
        None or False keeps the preset level, True means logging.DEBUG and
        an integer is used directly.

    Examples
    --------

    >>> from egfrdiff.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.debug('Test message')
    """
    if BASE_LOGGER_NAME not in logging.Logger.manager.loggerDict:
        setup_logger()

    logger = logging.getLogger(logger_name)

    if log_level is not None and log_level is not False:
        if isinstance(log_level, bool):
            log_level = logging.DEBUG
        elif not isinstance(log_level, int):
            raise ValueError('log_level must be a boolean, integer or None')
        if logger.getEffectiveLevel() != log_level:
            logger.debug('Changing log_level from %d to %d',
                         logger.getEffectiveLevel(), log_level)
            logger.setLevel(log_level)

    if name is None:
        return logger
    return SimulatorLoggerAdapter(logger, {'name': name})


def report_warning(logger, message, category, stacklevel=1):
    """
    Log ``message`` at WARNING level and emit it as a ``category`` warning

    Used for end-of-run problems (unconverged steps, instabilities) that
    callers may want to filter or escalate with the warnings module.
    ``stacklevel`` counts from the caller of this function.
    """
    logger.warning(message)
    warnings.warn(message, category, stacklevel=stacklevel + 1)


class SimulatorLoggerAdapter(logging.LoggerAdapter):
    """ A logging adapter to prepend a simulator's name to log entries """
    def process(self, msg, kwargs):
        return '[%s] %s' % (self.extra['name'], msg), kwargs
