"""Control-process interception engine: wrappers, redirects and the module hook."""
