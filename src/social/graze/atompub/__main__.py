from social.graze.atompub.cli import main

if __name__ == "__main__":
    main()
