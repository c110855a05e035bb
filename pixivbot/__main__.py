from pixivbot.bot import run

run()
