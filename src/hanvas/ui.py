"""
UI Module - Main Application Interface
======================================
OpenCV window around the frame orchestrator: keyboard controls, status
bar, palette, community feed panel, and background network calls whose
results are applied back on the UI thread.
"""

import logging
import queue
import threading
import time
from typing import Callable, Dict, List, Optional

import cv2
import numpy as np

from .camera import Camera
from .canvas import ColorPalette, decode_data_url, encode_data_url, export_snapshot, mirror, thumbnail
from .community import CommunitySync, FeedResponse, RemoteFeedClient
from .config import AppConfig
from .feed_store import CommunityPost, JsonPostStore
from .hand_tracking import HandTracker
from .orchestrator import DrawingSession, FrameOrchestrator
from .trail import RadiusMode

logger = logging.getLogger(__name__)

WINDOW_NAME = "Hanvas"


class HanvasApp:
    """
    Hand drawing application.

    Every mutation of drawing or feed state happens on the thread running
    run(); worker threads only perform network I/O.
    """

    # UI Colors (BGR)
    UI_BG_COLOR = (30, 30, 30)
    UI_ACCENT_COLOR = (230, 168, 111)
    UI_TEXT_COLOR = (255, 255, 255)
    UI_MUTED_COLOR = (150, 150, 150)

    PANEL_THUMBS = 4
    THUMB_SIZE = (160, 90)

    def __init__(
        self,
        config: AppConfig,
        orchestrator: Optional[FrameOrchestrator] = None,
        sync: Optional[CommunitySync] = None
    ):
        self.config = config
        self.status = ""

        if orchestrator is None:
            session = DrawingSession(config.trail)
            orchestrator = FrameOrchestrator(
                session,
                Camera(camera_id=config.camera_id, width=config.width, height=config.height),
                HandTracker(max_hands=config.max_hands, model_path=config.model_path),
                mirrored=config.mirror,
                clear_on_stop=config.clear_on_stop,
                on_status=self.set_status
            )
        self.orchestrator = orchestrator
        self.session = orchestrator.session

        if sync is None:
            remote = RemoteFeedClient(config.server_url) if config.server_url else None
            sync = CommunitySync(remote, JsonPostStore(config.local_feed_path), on_status=self.set_status)
        self.sync = sync

        self._colors = ColorPalette.get_all()
        self._show_panel = True
        self._running = False
        self._results: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._thumbs: Dict[str, Optional[np.ndarray]] = {}

    def set_status(self, message: str):
        self.status = message

    # Background work

    def _in_background(self, work: Callable[[], FeedResponse], apply: Callable[[FeedResponse], None]):
        """Run `work` on a worker thread and queue `apply` for the UI thread."""
        def runner():
            response = work()
            self._results.put(lambda: apply(response))

        threading.Thread(target=runner, daemon=True).start()

    def drain_results(self):
        """Apply finished background results on the calling thread."""
        while True:
            try:
                apply = self._results.get_nowait()
            except queue.Empty:
                return
            apply()

    # Actions

    def toggle_webcam(self):
        if self.orchestrator.is_running:
            self.orchestrator.stop()
        else:
            self.orchestrator.start()

    def refresh_feed(self):
        if self.sync.is_remote:
            self.set_status("Loading community feed...")
            self._in_background(self.sync.remote.fetch_posts, self.sync.apply_fetch)
        else:
            self.sync.apply_fetch(None)

    def export_drawing(self):
        surface = self.orchestrator.surface
        if surface is None or surface.size == 0:
            self.set_status("Nothing to export yet. Start webcam and draw first.")
            return
        try:
            path = export_snapshot(surface, self.config.output_dir)
        except OSError as e:
            logger.error("Export failed: %s", e)
            self.set_status("Export failed: unable to save image.")
            return
        self.set_status(f"Exported drawing as {path.name}.")

    def share_drawing(self):
        surface = self.orchestrator.surface
        if surface is None or self.session.trails.is_empty():
            self.set_status("Nothing to share yet. Draw something first.")
            return

        image_data_url = encode_data_url(mirror(surface))
        if self.sync.is_remote:
            self.set_status("Sharing...")
            self._in_background(
                lambda: self.sync.remote.submit(image_data_url),
                lambda response: self.sync.apply_publish(response, image_data_url)
            )
        else:
            self.sync.apply_publish(None, image_data_url)

    def select_color(self, index: int):
        if 0 <= index < len(self._colors):
            self.session.set_paint_color(self._colors[index])

    def handle_key(self, key: int) -> bool:
        """
        Handle keyboard input.

        Returns:
            False if should quit, True otherwise
        """
        if key == ord('q') or key == 27:  # Q or Escape
            return False

        elif key == ord('w'):
            self.toggle_webcam()

        elif key == ord('c'):
            self.orchestrator.clear()

        elif key == ord('e'):
            self.export_drawing()

        elif key == ord('p'):
            self.share_drawing()

        elif key == ord('f'):
            self.refresh_feed()

        elif key == ord('d'):
            enabled = self.session.toggle_drawing()
            self.set_status(f"Drawing {'on' if enabled else 'off'}")

        elif key == ord('m'):
            enabled = self.session.toggle_mixing()
            self.set_status(f"Color mixing {'on' if enabled else 'off'}")

        elif key == ord('b'):
            mode = self.session.cycle_blend_mode()
            self.set_status(f"Blend mode: {mode.value}")

        elif key == ord('h'):
            self._show_panel = not self._show_panel

        elif ord('1') <= key <= ord('8'):
            self.select_color(key - ord('1'))

        return True

    # Drawing

    def _idle_frame(self) -> np.ndarray:
        frame = np.full((self.config.height, self.config.width, 3), 20, dtype=np.uint8)
        cv2.putText(
            frame, "Press [W] to enable webcam",
            (30, self.config.height // 2), cv2.FONT_HERSHEY_SIMPLEX, 0.9,
            self.UI_TEXT_COLOR, 2
        )
        return frame

    def _draw_ui(self, frame: np.ndarray) -> np.ndarray:
        h, w = frame.shape[:2]
        session = self.session

        cv2.rectangle(frame, (0, 0), (w, 50), self.UI_BG_COLOR, -1)
        cv2.putText(
            frame, f"Hand state: {self.orchestrator.hand_state_text}",
            (10, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.55, self.UI_TEXT_COLOR, 1
        )
        mode = session.blend_mode.value if session.mixing_enabled else "off"
        cv2.putText(
            frame,
            f"Draw: {'on' if session.drawing_enabled else 'off'} | Mix: {mode} | "
            f"Feed: {self.sync.mode.value}",
            (10, 42), cv2.FONT_HERSHEY_SIMPLEX, 0.5, self.UI_ACCENT_COLOR, 1
        )
        get_fps = getattr(self.orchestrator.camera, "get_fps", None)
        if get_fps is not None and self.orchestrator.is_running:
            cv2.putText(
                frame, f"FPS: {get_fps():.0f}",
                (w - 100, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, self.UI_ACCENT_COLOR, 1
            )
        if self.status:
            cv2.putText(
                frame, self.status[:70],
                (w // 2 - 120, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, self.UI_TEXT_COLOR, 1
            )

        # Palette (top right)
        palette_start = w - 8 * 30 - 10
        for i, color in enumerate(self._colors):
            x = palette_start + i * 30
            cv2.rectangle(frame, (x, 28), (x + 25, 46), color, -1)
            if color == session.paint_color:
                cv2.rectangle(frame, (x - 2, 26), (x + 27, 48), self.UI_TEXT_COLOR, 2)

        instructions = [
            "[W] Webcam | [C] Clear | [E] Export | [P] Share",
            "[1-8] Color | [D] Draw | [M] Mix | [B] Blend",
            "[F] Feed | [H] Panel | [Q] Quit",
        ]
        y_pos = h - 60
        for inst in instructions:
            cv2.putText(frame, inst, (10, y_pos), cv2.FONT_HERSHEY_SIMPLEX, 0.45, self.UI_MUTED_COLOR, 1)
            y_pos += 20

        return frame

    def _thumb_for(self, post: CommunityPost) -> Optional[np.ndarray]:
        if post.image_data_url not in self._thumbs:
            image = decode_data_url(post.image_data_url)
            self._thumbs[post.image_data_url] = thumbnail(image, self.THUMB_SIZE) if image is not None else None
        return self._thumbs[post.image_data_url]

    def _draw_community_panel(self, frame: np.ndarray) -> np.ndarray:
        posts: List[CommunityPost] = self.sync.posts[:self.PANEL_THUMBS]
        if not self._show_panel or not posts:
            return frame

        h, w = frame.shape[:2]
        tw, th = self.THUMB_SIZE
        x = w - tw - 10
        y = 60
        for post in posts:
            thumb = self._thumb_for(post)
            if thumb is None:
                continue
            if y + th > h - 70:
                break
            frame[y:y + th, x:x + tw] = thumb
            cv2.rectangle(frame, (x - 1, y - 1), (x + tw, y + th), self.UI_ACCENT_COLOR, 1)
            y += th + 8

        # Drop thumbnails of posts that left the feed
        live = {post.image_data_url for post in self.sync.posts}
        for key in [k for k in self._thumbs if k not in live]:
            del self._thumbs[key]

        return frame

    def run(self):
        """Run the main application loop."""
        logger.info("Hanvas - draw with a closed hand. Press [W] to start the webcam.")

        self.orchestrator.load_detector()
        self.refresh_feed()

        self._running = True
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(WINDOW_NAME, self.config.width, self.config.height)

        try:
            while self._running:
                self.drain_results()

                result = self.orchestrator.step()
                if result is not None:
                    display = result.display
                elif self.orchestrator.is_running:
                    time.sleep(0.001)
                    continue
                else:
                    display = self._idle_frame()

                display = self._draw_ui(display)
                display = self._draw_community_panel(display)
                cv2.imshow(WINDOW_NAME, display)

                key = cv2.waitKey(1) & 0xFF
                if not self.handle_key(key):
                    break
        finally:
            self._running = False
            self.orchestrator.stop()
            self.orchestrator.detector.release()
            cv2.destroyAllWindows()
            logger.info("Application closed")


def main():
    """Main entry point."""
    import argparse

    from dotenv import find_dotenv, load_dotenv

    from .config import configure_logging

    # .env of the working directory
    load_dotenv(find_dotenv(usecwd=True))
    config = AppConfig.from_env()

    parser = argparse.ArgumentParser(description="Hanvas - draw in the air with your hand")
    parser.add_argument('--camera', type=int, default=config.camera_id, help='Camera device index')
    parser.add_argument('--server', default=config.server_url,
                        help='Community feed server URL ("" to keep the feed local)')
    parser.add_argument('--radius-mode', choices=['fixed', 'speed'], default=config.trail.radius_mode.value,
                        help='Stamp radius: fixed size or derived from hand speed')
    parser.add_argument('--keep-on-stop', action='store_true',
                        help='Keep the drawing when the webcam is stopped')
    args = parser.parse_args()

    config.camera_id = args.camera
    config.server_url = args.server or None
    config.trail.radius_mode = RadiusMode(args.radius_mode)
    if args.keep_on_stop:
        config.clear_on_stop = False

    configure_logging(config.log_level)
    HanvasApp(config).run()


if __name__ == "__main__":
    main()
