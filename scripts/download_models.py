#!/usr/bin/env python3
"""Download all required models for ActiveSpeaker ahead of the first run"""

import os
import urllib.request
from pathlib import Path

from activespeaker.config.config_loader import config


def download_landmark_model():
    """Download the MediaPipe face landmarker bundle"""
    print("Downloading face landmarker...")
    model_path = Path(config.get('landmarks.model_path', 'models/face_landmarker.task'))
    if model_path.exists():
        print(f"  ✓ Already present at {model_path}")
        return
    
    try:
        model_path.parent.mkdir(parents=True, exist_ok=True)
        urllib.request.urlretrieve(config.get('landmarks.model_url'), model_path)
        print(f"  ✓ Face landmarker saved to {model_path}")
    except Exception as e:
        print(f"  ✗ Failed to download face landmarker: {e}")


def download_speech_model():
    """Download the configured Whisper model into the Whisper cache"""
    import whisper
    
    name = config.get('speech.whisper_model', 'base')
    print(f"Downloading Whisper ({name})...")
    try:
        whisper.load_model(name, device="cpu")
        print("  ✓ Whisper model downloaded")
    except Exception as e:
        print(f"  ✗ Failed to download Whisper: {e}")


def download_diarization_model():
    """Fetch the pyannote pipeline into the HuggingFace cache"""
    from pyannote.audio import Pipeline
    
    name = config.get('diarization.model', 'pyannote/speaker-diarization-3.1')
    token_env = config.get('diarization.hf_token_env', 'HF_TOKEN')
    print(f"Downloading {name}...")
    
    token = os.environ.get(token_env)
    if not token:
        print(f"  ✗ Set {token_env} to a HuggingFace token that has accepted the model's conditions")
        return
    
    try:
        if Pipeline.from_pretrained(name, use_auth_token=token) is None:
            raise RuntimeError("access denied")
        print("  ✓ Diarization pipeline downloaded")
    except Exception as e:
        print(f"  ✗ Failed to download diarization pipeline: {e}")


if __name__ == "__main__":
    print("ActiveSpeaker Model Download")
    print("=" * 50)
    
    download_landmark_model()
    print()
    download_speech_model()
    print()
    download_diarization_model()
