#!/usr/bin/env python3
"""
Web Terminal
Flask and Socket.IO access to HackNexus terminals
"""
