# Hanvas - Hand Gesture Drawing with a Community Feed
# Version: 1.0.0

"""
Core modules for the hand drawing system:
- camera: Webcam stream handler
- hand_tracking: MediaPipe hand landmark detection
- gesture_logic: Hand state classification and drawing cursor
- trail: Per-hand ink trails
- canvas: Ink layer compositing and export
- orchestrator: Per-frame drawing pipeline
- community: Community feed client with local fallback
- feed_store: Community post storage
- server: Community feed HTTP server
- ui: Main application interface
"""

__version__ = "1.0.0"
