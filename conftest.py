pytest_plugins = ["step_pipeline.pytest_plugin"]
