"""Media input: audio preparation and video frame access"""
