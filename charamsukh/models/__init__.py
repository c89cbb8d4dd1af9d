from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models to register tables
from .users import User  # noqa: F401,E402
from .categories import Category  # noqa: F401,E402
from .stories import Story  # noqa: F401,E402
from .likes import StoryLike  # noqa: F401,E402
from .comments import StoryComment  # noqa: F401,E402
from .bookmarks import Bookmark  # noqa: F401,E402
from .reading_history import ReadingHistory  # noqa: F401,E402
from .audio_jobs import AudioJob  # noqa: F401,E402
from .story_tags import StoryTag  # noqa: F401,E402
