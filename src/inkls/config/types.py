from typing import List, Optional, TypedDict


# Server Config Types (~/.inkls/config.yml)
class CompilerConfig(TypedDict, total=False):
    executable: Optional[str]
    launcher: List[str]  # argv prefix, e.g. ["mono"]
    timeout: float  # seconds


class MirrorConfig(TypedDict, total=False):
    temp_root: Optional[str]
    extensions: List[str]


class ServerConfig(TypedDict):
    inkls: int
    compiler: CompilerConfig
    mirror: MirrorConfig


# Client Settings Types (the "ink" configuration section)
class InkSettings(TypedDict):
    mainStoryPath: str
    inklecateExecutablePath: Optional[str]
    runThroughMono: bool
