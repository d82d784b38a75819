import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from backend.routes import router
from sitout.config import Settings, load_settings
from sitout.llm import TextProvider
from sitout.runtime import Runtime


def create_app(
    settings: Settings | None = None,
    provider: TextProvider | None = None,
    run_driver: bool = True,
) -> FastAPI:
    runtime = Runtime(settings or load_settings(), provider=provider)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        probe: asyncio.Task | None = None
        if runtime.settings.probe_on_startup and len(runtime.pool):
            # startup key test runs alongside the first turns
            probe = asyncio.create_task(runtime.client.probe_all(runtime.settings.probe_delay))
        app.state.probe_task = probe
        if run_driver:
            runtime.driver.start()
        yield
        if probe is not None:
            probe.cancel()
            with suppress(asyncio.CancelledError):
                await probe
        await runtime.driver.stop()
        await runtime.speech.drain()

    app = FastAPI(title="Sit-out Chat", lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses .env / SITOUT_* environment)
app = create_app()
