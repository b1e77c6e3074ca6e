from enum import Enum, IntEnum

# Collections
PROPERTIES = "properties"
PHOTOS = "photos"

# Thumbnails
THUMBNAIL_SIZES = (128, 256, 512)
THUMB_PREFIX = "thumb_"


class Currency(str, Enum):
    MXN = "MXN"
    USD = "USD"


class PropertyType(IntEnum):
    HOUSE = 0
    APARTMENT = 1
    OFFICE = 2


class CommercialMode(IntEnum):
    SELL = 0
    RENT = 1
    PRESELL = 2
