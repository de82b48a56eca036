SOFTWARE_NAME = 'aprs2sondehub'
__version__ = '1.0.0'
