"""
Services layer for the clip processing application.
Contains the job lifecycle logic and the remote worker clients.
"""
