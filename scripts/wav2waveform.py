import sys, os, logging

from wav_reader import read_wav
from waveform_render import render_channel, save_waveform

DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 640

def wav2waveform(wav_path, png_path, width=DEFAULT_WIDTH, height=DEFAULT_HEIGHT, channel="left"):
    try:
        audio = read_wav(wav_path)
    except (ValueError, OSError) as e:
        logging.error("WAV error in %s: %s", wav_path, e)
        return False

    try:
        if os.path.dirname(png_path):
            os.makedirs(os.path.dirname(png_path), exist_ok=True)
        pixels = render_channel(audio, channel, width, height)
        save_waveform(pixels, png_path)
    except (ValueError, OSError) as e:
        logging.error("Could not write %s: %s", png_path, e)
        return False

    logging.info(
        "%s -> %s (%d Hz, %.2f s, %d samples)",
        wav_path, png_path, audio.sample_rate, audio.duration, audio.frame_count,
    )
    return True

if __name__ == "__main__":
    if len(sys.argv) not in (3, 5, 6):
        print("Usage: wav2waveform.py <input.wav> <output.png> [width height [left|right]]")
        sys.exit(1)
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    size = (int(sys.argv[3]), int(sys.argv[4])) if len(sys.argv) >= 5 else (DEFAULT_WIDTH, DEFAULT_HEIGHT)
    channel = sys.argv[5] if len(sys.argv) == 6 else "left"
    ok = wav2waveform(sys.argv[1], sys.argv[2], size[0], size[1], channel)
    sys.exit(0 if ok else 1)
