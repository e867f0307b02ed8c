"""startoff -- scaffold Vite + Vue 3 projects from remote templates.

Quick usage::

    import asyncio
    from startoff.config import Config
    from startoff.pipeline import Pipeline

    result = asyncio.run(Pipeline(Config()).run())
    print(result.directory_name)
"""

__version__ = "0.3.0"
