from .consumer import Consumer
from .producer import Producer, ProducerStats

__all__ = ["Consumer", "Producer", "ProducerStats"]
