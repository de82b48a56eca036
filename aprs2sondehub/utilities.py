import logging
from os import PathLike
from pathlib import Path
import sys
from typing import List

DEFAULT_LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'


def read_servers(filename: PathLike) -> List[str]:
    """
    read APRS-IS server hostnames from a newline-delimited text file

    :param filename: path to text file
    :return: list of hostnames, in file order, without blank lines
    """

    if not isinstance(filename, Path):
        filename = Path(filename)

    with open(filename.expanduser()) as servers_file:
        return [line.strip() for line in servers_file if len(line.strip()) > 0]


def get_logger(
    name: str,
    log_filename: PathLike = None,
    file_level: int = None,
    console_level: int = None,
    log_format: str = None,
) -> logging.Logger:
    """
    instantiate logger instance

    :param name: name of logger
    :param log_filename: path to log file
    :param file_level: minimum log level to write to log file
    :param console_level: minimum log level to print to console
    :param log_format: logger message format
    :return: instance of a Logger object
    """

    if file_level is None:
        file_level = logging.DEBUG
    if console_level is None:
        console_level = logging.INFO
    logger = logging.getLogger(name)

    # check if logger is already configured
    if logger.level == logging.NOTSET and len(logger.handlers) == 0:
        # child loggers propagate to the package logger
        if '.' in name:
            logger.parent = get_logger(name.rsplit('.', 1)[0])
        elif console_level != logging.NOTSET:
            logger.setLevel(logging.DEBUG)

            console_output = logging.StreamHandler(sys.stdout)
            console_output.setLevel(console_level)
            logger.addHandler(console_output)

    if log_filename is not None:
        file_handler = logging.FileHandler(log_filename)
        file_handler.setLevel(file_level)
        for existing_file_handler in [
            handler for handler in logger.handlers if isinstance(handler, logging.FileHandler)
        ]:
            logger.removeHandler(existing_file_handler)
            existing_file_handler.close()
        logger.addHandler(file_handler)

    if log_format is None:
        log_format = DEFAULT_LOG_FORMAT
    log_formatter = logging.Formatter(log_format)
    for handler in logger.handlers:
        handler.setFormatter(log_formatter)

    return logger
