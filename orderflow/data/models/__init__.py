#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from orderflow.data.models.record import RecordModel

__all__ = ["RecordModel"]
