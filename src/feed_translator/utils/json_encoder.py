from datetime import datetime
from enum import Enum
import json

class FeedTranslatorJSONEncoder(json.JSONEncoder):
    """
    JSON encoder aware of datetimes and enums, used for JSON Feed output.
    """
    def default(self, o):
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)
