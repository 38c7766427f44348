"""cf-watcher core: configuration and errors."""
