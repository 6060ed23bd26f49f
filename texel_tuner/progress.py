"""Line-oriented progress output shared by the tuner and the dataset builder."""

import threading

print_lock = threading.Lock()


def log(msg: str) -> None:
    with print_lock:
        print(msg, flush=True)
