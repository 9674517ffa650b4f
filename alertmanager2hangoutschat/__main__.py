from alertmanager2hangoutschat.server import run

if __name__ == "__main__":
    run()
