"""Protocol capture services for the credtrap honeypot"""
