"""Building blocks for resilient services: hash rings, rate limiting, weighted balancing, cache failover and delayed-message storage."""

__version__ = "0.1.0"