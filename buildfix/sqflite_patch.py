import os
import logging
from typing import Optional
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# --- CONFIGURAÇÃO ---
# Cache do pub (Dart). PUB_CACHE sobrescreve o padrão ~/.pub-cache
PUB_CACHE_DIRNAME = ".pub-cache"
PUB_HOSTED = os.path.join("hosted", "pub.dev")


class DependencyPatch(BaseModel):
    """Literal text fix applied to one file of a package in the pub cache."""
    package: str
    version: str
    relative_path: str
    token: str
    replacement: str
    message: str

    @property
    def package_dir(self) -> str:
        return f"{self.package}-{self.version}"

    def target_path(self, home: Optional[str] = None) -> str:
        return os.path.join(pub_cache_dir(home), PUB_HOSTED, self.package_dir, self.relative_path)

    def apply(self, home: Optional[str] = None, path: Optional[str] = None) -> bool:
        """
        Patches the cached file in place.
        Returns False (and prints nothing) when the file is not there yet.
        I/O errors are not caught: a failed read or write stops the build.
        """
        target = path or self.target_path(home)
        if not os.path.exists(target):
            logger.debug("skip %s: %s not found", self.package_dir, target)
            return False

        # newline="" keeps \r\n untouched, so files without the token stay byte-identical
        with open(target, "r", encoding="utf-8", newline="") as f:
            content = f.read()

        hits = content.count(self.token)
        content = patch_text(content, self.token, self.replacement)

        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(content)

        logger.debug("%s: replaced %d occurrence(s) of %s", target, hits, self.token)
        print(self.message)
        return True


# sqflite_android 2.4.2+2 references an API level constant older SDKs don't have
SQFLITE_BAKLAVA = DependencyPatch(
    package="sqflite_android",
    version="2.4.2+2",
    relative_path=os.path.join("android", "src", "main", "java", "com", "tekartik", "sqflite", "Utils.java"),
    token="Build.VERSION_CODES.BAKLAVA",
    replacement="35",
    message="Fixed sqflite BAKLAVA issue",
)


def pub_cache_dir(home: Optional[str] = None) -> str:
    if home is None:
        override = os.environ.get("PUB_CACHE")
        if override:
            return override
        home = os.path.expanduser("~")
    return os.path.join(home, PUB_CACHE_DIRNAME)


def sqflite_utils_path(home: Optional[str] = None) -> str:
    return SQFLITE_BAKLAVA.target_path(home)


def patch_text(content: str, token: str, replacement: str) -> str:
    return content.replace(token, replacement)


def fix_sqflite(home: Optional[str] = None, path: Optional[str] = None) -> bool:
    return SQFLITE_BAKLAVA.apply(home=home, path=path)


if __name__ == "__main__":
    fix_sqflite()
