"""
Caption Server - live caption translation over WebSockets

Serves the LiveTranslator to a browser caption UI. The UI sends finalized
English speech segments, gets an immediate translation back (the fallback
translation while the model is still loading), and later receives the real
model's translation for the same segment as an upgrade on the data channel.

### Starting the Server:

```bash
python caption_server.py [OPTIONS]
# or, once installed:
caption-server --target-language es --preload
```

### Available Parameters:
    - `-p, --port`: HTTP/WebSocket port; default 8890.
    - `-t, --target-language`: Default target language (ISO code, e.g. "es", "pt-BR").
    - `--preload`: Load the target language's model at startup.
    - `--device`: 'cuda' or 'cpu' for the translation worker.
    - `--translation-timeout`: Seconds to wait for one translation; default 15.
    - `--max-queued`: Maximum requests waiting for a model to load; default 200.
    - `--transcription-log`: File path to log every broadcast event as a JSON line.
    - `-D, --debug`: Verbose debug output.

### Endpoints:
    - `GET /state`: translation state and load progress snapshot
    - `GET /languages`: supported languages and their models
    - `WS /control`: JSON commands
        {"command": "translate", "text": "...", "language": "es", "request_id": "seg-1"}
        {"command": "preload", "language": "es"}
        {"command": "get_state"}
    - `WS /data`: broadcasts
        {"type": "progress", ...}
        {"type": "translation_update", "request_id": "...", "translation": "..."}
"""

import argparse
import asyncio
import json
import logging
import sys
import threading
import time
from datetime import datetime

import aiohttp_cors
from aiohttp import WSMsgType, web
from colorama import Fore, Style, init

from live_translation import (
    MODEL_CATALOG,
    LiveTranslator,
    TranslationError,
    TranslatorSettings,
    normalize_language_code,
)
from live_translation.config import MAX_QUEUED_REQUESTS, TRANSLATION_TIMEOUT_SECONDS

# Initialize colorama
init()


# Define ANSI color codes for terminal output
class bcolors:
    HEADER = '\033[95m'   # Magenta
    OKBLUE = '\033[94m'   # Blue
    OKCYAN = '\033[96m'   # Cyan
    OKGREEN = '\033[92m'  # Green
    WARNING = '\033[93m'  # Yellow
    FAIL = '\033[91m'     # Red
    ENDC = '\033[0m'      # Reset to default
    BOLD = '\033[1m'


debug_logging = False

# [CONCEPT] Application state -> one translator and the set of data clients per app
translator_key = web.AppKey('translator', LiveTranslator)
data_connections_key = web.AppKey('data_connections', set)
default_language_key = web.AppKey('default_language', str)


def debug_print(message):
    if debug_logging:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        thread_name = threading.current_thread().name
        print(f"{Fore.CYAN}[DEBUG][{timestamp}][{thread_name}] {message}{Style.RESET_ALL}", file=sys.stderr)


def parse_arguments(argv=None):
    global debug_logging

    parser = argparse.ArgumentParser(description='Start the live caption translation server.')

    parser.add_argument('-p', '--port', type=int, default=8890,
                        help='Port for the HTTP server and the /control and /data WebSockets. Default is 8890.')
    parser.add_argument('-t', '--target-language', type=str, default='es',
                        help='Default target language for translate commands that do not name one. '
                             'ISO codes and regional variants are accepted (es, pt-BR, zh-CN). Default is es.')
    parser.add_argument('--preload', action='store_true',
                        help='Load the target language model at startup instead of on first use.')
    parser.add_argument('--device', type=str, default='cpu', choices=['cpu', 'cuda'],
                        help="Device for the translation worker: 'cuda' or 'cpu'. Default is cpu.")
    parser.add_argument('--translation-timeout', type=float, default=TRANSLATION_TIMEOUT_SECONDS,
                        help='Seconds to wait for a single translation before giving up. Default is 15.')
    parser.add_argument('--max-queued', type=int, default=MAX_QUEUED_REQUESTS,
                        help='Maximum number of requests kept waiting for a model to finish loading. Default is 200.')
    parser.add_argument('--transcription-log', type=str, default=None,
                        help='File path to append every broadcast event to as a JSON line.')
    parser.add_argument('-D', '--debug', action='store_true',
                        help='Enable debug logging for detailed server operations.')

    args = parser.parse_args(argv)
    debug_logging = args.debug

    aiohttp_logger = logging.getLogger('aiohttp')
    if args.debug:
        aiohttp_logger.setLevel(logging.DEBUG)
    else:
        # Keep aiohttp access/server chatter below WARNING out of the console
        aiohttp_logger.setLevel(logging.WARNING)

    return args


def state_payload(translator):
    return {
        'translation': translator.get_translation_state(),
        'progress': translator.get_current_progress_state().to_dict(),
    }


# --- HTTP ---

async def state_handler(request):
    return web.json_response(state_payload(request.app[translator_key]))


async def languages_handler(request):
    languages = [
        {'code': entry.language_code, 'name': entry.display_name, 'model': entry.model_id}
        for entry in MODEL_CATALOG.values()
    ]
    return web.json_response({'languages': languages})


# --- WebSockets ---

async def control_handler(request):
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    app = request.app
    translator = app[translator_key]
    preload_tasks = set()

    debug_print(f"New control connection from {request.remote}")
    print(f"{bcolors.OKGREEN}Control client connected{bcolors.ENDC}")

    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                try:
                    command_data = json.loads(msg.data)
                except json.JSONDecodeError:
                    print(f"{bcolors.WARNING}Received invalid JSON command{bcolors.ENDC}")
                    await ws.send_json({"status": "error", "message": "Invalid JSON command"})
                    continue

                if not isinstance(command_data, dict):
                    await ws.send_json({"status": "error", "message": "Invalid JSON command"})
                    continue

                command = command_data.get("command")

                if command == "translate":
                    text = command_data.get("text", "")
                    language = command_data.get("language") or app[default_language_key]
                    request_id = command_data.get("request_id")

                    translation = await translator.translate_text(text, language, request_id=request_id)
                    timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
                    print(f"[{timestamp}] {bcolors.BOLD}Sentence:{bcolors.ENDC} {bcolors.OKGREEN}{text}{bcolors.ENDC}\n"
                          f"[{timestamp}] {bcolors.BOLD}Translation:{bcolors.ENDC} {bcolors.OKBLUE}{translation}{bcolors.ENDC}")
                    await ws.send_json({
                        "status": "success",
                        "request_id": request_id,
                        "language": normalize_language_code(language),
                        "translation": translation,
                    })

                elif command == "preload":
                    language = command_data.get("language") or app[default_language_key]
                    # Run in the background so translate commands keep flowing while the model loads
                    task = asyncio.create_task(preload_and_reply(ws, translator, language))
                    preload_tasks.add(task)
                    task.add_done_callback(preload_tasks.discard)

                elif command == "get_state":
                    await ws.send_json({"status": "success", **state_payload(translator)})

                else:
                    print(f"{bcolors.WARNING}Unknown command: {command}{bcolors.ENDC}")
                    await ws.send_json({"status": "error", "message": f"Unknown command {command}"})

            elif msg.type == WSMsgType.ERROR:
                print(f"{bcolors.FAIL}Control WebSocket connection closed with exception {ws.exception()}{bcolors.ENDC}")

    finally:
        print(f"{bcolors.WARNING}Control client disconnected.{bcolors.ENDC}")
        for task in list(preload_tasks):
            task.cancel()

    return ws


async def preload_and_reply(ws, translator, language):
    language = normalize_language_code(language)
    print(f"{bcolors.OKCYAN}Preloading translation model for {language}...{bcolors.ENDC}")
    try:
        await translator.preload_translator(language)
    except TranslationError as e:
        print(f"{bcolors.FAIL}Failed to load translation model for {language}: {e}{bcolors.ENDC}")
        reply = {"status": "error", "message": str(e), "language": language}
    else:
        print(f"{bcolors.OKGREEN}Translation model ready for {language}{bcolors.ENDC}")
        reply = {"status": "success", "message": f"Model ready for {language}", "language": language}

    if not ws.closed:
        await ws.send_json(reply)


async def data_handler(request):
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    data_connections = request.app[data_connections_key]
    print(f"{bcolors.OKGREEN}Data client connected{bcolors.ENDC}")
    data_connections.add(ws)
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                print(f"{bcolors.FAIL}Data WebSocket connection closed with exception {ws.exception()}{bcolors.ENDC}")
            else:
                debug_print(f"Ignoring {msg.type} message on data connection")
    finally:
        print(f"{bcolors.WARNING}Data client disconnected.{bcolors.ENDC}")
        data_connections.discard(ws)

    return ws


async def broadcast_messages(message_queue, data_connections, log_filename=None):
    """
    Continuously gets messages from the message queue and broadcasts them to
    all connected data clients. If a log_filename is provided, it also appends
    each message as a JSON line to the specified file.
    """
    log_file = None
    try:
        if log_filename:
            log_file = open(log_filename, "a", encoding="utf-8")
            print(f"{bcolors.OKGREEN}Logging all translation events to: {log_filename}{bcolors.ENDC}")

        while True:
            message_data = await message_queue.get()

            message_data['server_timestamp'] = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            message_str = json.dumps(message_data, ensure_ascii=False)

            if log_file:
                log_file.write(message_str + "\n")
                log_file.flush()

            # Copy: the set may change while we are sending
            for conn in list(data_connections):
                try:
                    await conn.send_str(message_str)
                except (ConnectionError, RuntimeError) as e:
                    print(f"{bcolors.WARNING}Could not send to a client, removing connection: {e}{bcolors.ENDC}")
                    data_connections.discard(conn)

    except asyncio.CancelledError:
        print(f"{bcolors.OKCYAN}Broadcast task cancelled.{bcolors.ENDC}")
        raise
    finally:
        if log_file:
            log_file.close()
            print(f"{bcolors.OKGREEN}Translation log file closed.{bcolors.ENDC}")


def create_app(translator, default_language='es', transcription_log=None):
    """
    Build the aiohttp application around `translator`.

    The broadcast task starts and stops with the application.
    """
    app = web.Application()
    message_queue = asyncio.Queue()

    app[translator_key] = translator
    app[data_connections_key] = set()
    app[default_language_key] = normalize_language_code(default_language)

    def on_progress(progress_state):
        message_queue.put_nowait({"type": "progress", **progress_state.to_dict()})

    def on_translation_update(request_id, translation):
        debug_print(f"Upgraded translation for {request_id}: {translation}")
        message_queue.put_nowait({
            "type": "translation_update",
            "request_id": request_id,
            "translation": translation,
        })

    async def background_tasks(app):
        subscription_id = translator.subscribe_progress(on_progress)
        translator.set_translation_update_callback(on_translation_update)
        broadcast_task = asyncio.create_task(
            broadcast_messages(message_queue, app[data_connections_key], transcription_log))

        yield

        translator.unsubscribe_progress(subscription_id)
        translator.set_translation_update_callback(None)
        broadcast_task.cancel()
        await asyncio.gather(broadcast_task, return_exceptions=True)

    app.cleanup_ctx.append(background_tasks)

    app.router.add_get('/state', state_handler)
    app.router.add_get('/languages', languages_handler)
    app.router.add_get('/control', control_handler)
    app.router.add_get('/data', data_handler)

    # Configure CORS for all routes
    cors = aiohttp_cors.setup(app, defaults={
        "*": aiohttp_cors.ResourceOptions(
                allow_credentials=True,
                expose_headers="*",
                allow_headers="*",
            )
    })
    for route in list(app.router.routes()):
        cors.add(route)

    return app


async def main_async(argv=None):
    args = parse_arguments(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    settings = TranslatorSettings.from_args(args)
    print(f"{bcolors.OKGREEN}Initializing caption server with parameters:{bcolors.ENDC}")
    for key, value in vars(args).items():
        print(f"    {bcolors.OKBLUE}{key}{bcolors.ENDC}: {value}")

    translator = LiveTranslator(settings=settings)
    app = create_app(translator, default_language=args.target_language,
                     transcription_log=args.transcription_log)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', args.port)

    try:
        await site.start()
        print(f"{bcolors.OKGREEN}Web server started on {bcolors.OKBLUE}http://localhost:{args.port}{bcolors.ENDC}")
        print(f"{bcolors.OKGREEN}Control and Data WebSockets available on the same port at /control and /data paths.{bcolors.ENDC}")

        if args.preload:
            try:
                await translator.preload_translator(
                    args.target_language,
                    on_progress=lambda state: debug_print(f"{state.status} ({state.overall_progress}%)"),
                )
                print(f"{bcolors.OKGREEN}Translation model ready for {args.target_language}{bcolors.ENDC}")
            except TranslationError as e:
                print(f"{bcolors.FAIL}Preload failed, translations will use the fallback until a retry: {e}{bcolors.ENDC}")

        # Serve until interrupted
        await asyncio.Event().wait()

    except OSError:
        print(f"{bcolors.FAIL}Error: Could not start server on port {args.port}. "
              f"It's possible another instance is already running or the port is in use.{bcolors.ENDC}")
    finally:
        await runner.cleanup()
        await shutdown_procedure(translator)


async def shutdown_procedure(translator):
    translator.shutdown()
    print(f"{bcolors.OKGREEN}Translation worker shut down{bcolors.ENDC}")

    tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    print(f"{bcolors.OKGREEN}All tasks cancelled, closing event loop now.{bcolors.ENDC}")


def main():
    print(f"{bcolors.BOLD}{bcolors.OKCYAN}Starting server, please wait...{bcolors.ENDC}")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        print(f"{bcolors.WARNING}Server interrupted by user.{bcolors.ENDC}")
        sys.exit(0)


if __name__ == '__main__':
    main()
