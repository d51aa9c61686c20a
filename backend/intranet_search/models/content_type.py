import enum


class ContentType(str, enum.Enum):
    """Searchable content types; the value is the tag stored in the index."""
    ANNOUNCEMENT = "announcement"
    TRAINING = "training"
    MANUAL = "manual"
    CHECKLIST = "checklist"
    IDEA = "idea"
    CAMPAIGN = "campaign"
    FEED_POST = "feed_post"
