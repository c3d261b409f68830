"""
LSP server implementation for Ink.

The server mirrors every workspace folder to a temporary directory,
keeps the mirror in sync with the editor and compiles the story with
inklecate on every edit, publishing its report as diagnostics.

Key Components:
- InkLSPServer: the server, wiring the features to the workspace registry
- workspace: mirrors, compile scheduling, compiler invocation and diagnostics
- features: document events, commands and workspace notifications

Usage Example:
    from inkls.config import load_server_config
    from inkls.lsp.server import InkLSPServer

    server = InkLSPServer(config=load_server_config())

    # Start server (stdio mode for IDE integration)
    server.start()

    # Or start in TCP mode for testing
    server.start(use_tcp=True, host="localhost")
"""
