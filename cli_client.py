import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx


BASE_URL = os.getenv("CONVO_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
CHAT_URL = f"{BASE_URL}/chat"
HISTORY_URL = f"{BASE_URL}/sessions/{{session_id}}/messages"
HEALTH_URL = f"{BASE_URL}/health"


def append_log(log_path: Path, event: str, payload: dict[str, Any]) -> None:
    row = {
        "ts": datetime.now().isoformat(timespec="seconds"),
        "event": event,
        **payload,
    }
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=False) + "\n")


def format_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [part.get("text", "") for part in content if isinstance(part, dict) and part.get("type") == "text"]
        images = sum(1 for part in content if isinstance(part, dict) and part.get("type") == "image_url")
        suffix = f" [+{images} image(s)]" if images else ""
        return " ".join(texts) + suffix
    return json.dumps(content, ensure_ascii=False)


def print_chat_response(data: dict[str, Any]) -> None:
    message = data.get("message") or {}
    text = format_content(message.get("content"))
    if text:
        print(f"assistant> {text}")

    for call in message.get("tool_calls") or []:
        function = call.get("function", {})
        print(f"[tool call] {function.get('name')}({function.get('arguments')}) id={call.get('id')}")

    for skipped in data.get("skipped") or []:
        print(f"[skipped] index={skipped.get('index')} reason={skipped.get('reason')}: {skipped.get('detail')}")


def print_history(data: dict[str, Any]) -> None:
    messages = data.get("messages") or []
    print(f"[history] {len(messages)} message(s)")
    for i, message in enumerate(messages):
        print(f"  {i:>3} {message.get('role')}: {format_content(message.get('content'))[:120]}")


def main() -> None:
    logs_dir = Path(__file__).resolve().parent / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    session_id = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"chat-{session_id}.jsonl"

    print("Convo CLI chat")
    print(f"Server: {BASE_URL}")
    print(f"Session: {session_id}")
    print(f"Log: {log_path}")
    print("Type /exit to quit. Type /help for commands.")
    append_log(log_path, "session_start", {"base_url": BASE_URL, "session_id": session_id})

    with httpx.Client(timeout=120.0) as client:
        try:
            health = client.get(HEALTH_URL)
            health.raise_for_status()
            print("[connected] /health OK")
            append_log(log_path, "health_ok", {"status_code": health.status_code, **health.json()})
        except Exception as exc:
            print(f"[error] Server is not reachable: {exc}")
            append_log(log_path, "health_error", {"error": str(exc)})
            return

        while True:
            try:
                line = input("You> ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nBye.")
                break

            if not line:
                continue

            if line in {"/exit", "/quit"}:
                print("Bye.")
                append_log(log_path, "session_end", {"reason": "user_exit"})
                break

            if line == "/help":
                print("Commands:")
                print("/help          - show this help")
                print("/exit          - quit")
                print("/history       - show the server-side session history")
                print("/system <text> - add a system message (anchors the session if sent first)")
                print("/log           - show current log file")
                continue

            if line == "/log":
                print(f"log: {log_path}")
                continue

            if line == "/history":
                try:
                    history_resp = client.get(HISTORY_URL.format(session_id=session_id))
                    history_resp.raise_for_status()
                    print_history(history_resp.json())
                except Exception as exc:
                    print(f"[error] History request failed: {exc}")
                    append_log(log_path, "history_error", {"error": str(exc)})
                continue

            if line.startswith("/system "):
                payload = {"messages": [{"role": "system", "content": line[len("/system "):]}]}
                try:
                    add_resp = client.post(HISTORY_URL.format(session_id=session_id), json=payload)
                    add_resp.raise_for_status()
                    print(f"[system] admitted={add_resp.json().get('admitted')}")
                    append_log(log_path, "system_message", payload)
                except Exception as exc:
                    print(f"[error] System message request failed: {exc}")
                    append_log(log_path, "system_error", {"error": str(exc)})
                continue

            payload = {
                "session_id": session_id,
                "messages": [{"role": "user", "content": line}],
            }
            append_log(log_path, "user_message", payload)

            try:
                chat_resp = client.post(CHAT_URL, json=payload)
                chat_resp.raise_for_status()
                chat_data = chat_resp.json()
            except json.JSONDecodeError:
                print("[error] Chat response was not valid JSON.")
                append_log(
                    log_path,
                    "chat_error",
                    {"error": "invalid_json", "status_code": chat_resp.status_code},
                )
                continue
            except Exception as exc:
                print(f"[error] Chat request failed: {exc}")
                append_log(log_path, "chat_error", {"error": str(exc)})
                continue

            print_chat_response(chat_data)
            append_log(log_path, "assistant_response", chat_data)


if __name__ == "__main__":
    main()
