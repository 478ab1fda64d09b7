"""Multimodal analysis stages: probing, cuts, audio, OCR, speech and suggestions."""
