__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'switchyard'
__license__ = 'MIT'
__version__ = "0.0.0"

from .context import *
from .flags import *
from .scopes import *
from .environment import *
from .commands import *
from .help import *
from .dispatch import *
from .faults import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(0, 0, 0, "final", 0, "")

__all__ = (
    "__path__",
    "__title__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of every submodule
__all__ += context.__all__  # type: ignore[attr-defined]
__all__ += flags.__all__  # type: ignore[attr-defined]
__all__ += scopes.__all__  # type: ignore[attr-defined]
__all__ += environment.__all__  # type: ignore[attr-defined]
__all__ += commands.__all__  # type: ignore[attr-defined]
__all__ += help.__all__  # type: ignore[attr-defined]
__all__ += dispatch.__all__  # type: ignore[attr-defined]
__all__ += faults.__all__  # type: ignore[attr-defined]
